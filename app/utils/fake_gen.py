from faker import Faker
from faker.providers import BaseProvider


class KitchenProvider(BaseProvider):
    """
    餐厅物料专用数据生成器
    生成食材、包材名称及供应商名称
    """

    # 分类 -> (物料名称, 单位)
    catalog = {
        '肉类': [('鸡胸肉', 'kg'), ('猪五花', 'kg'), ('牛腩', 'kg'), ('鸡翅', 'kg')],
        '海鲜': [('鲜虾', 'kg'), ('鱿鱼', 'kg'), ('鲈鱼', '条')],
        '蔬菜': [('泰国香菜', 'kg'), ('香茅', 'kg'), ('青柠', 'kg'), ('朝天椒', 'kg'), ('高良姜', 'kg')],
        '干货调料': [('鱼露', '瓶'), ('椰浆', '罐'), ('茉莉香米', '袋'), ('棕榈糖', 'kg'), ('罗望子酱', '瓶')],
        '饮料': [('椰子水', '箱'), ('泰式红茶粉', '包'), ('炼乳', '罐')],
        '包材': [('外卖餐盒', '包'), ('纸吸管', '包'), ('打包袋', '包')],
    }

    supplier_suffixes = ['食品', '贸易', '冷链', '农场', '供应链']

    def kitchen_items(self):
        """返回 [(分类, 名称, 单位), ...]"""
        return [
            (category, name, unit)
            for category, entries in self.catalog.items()
            for name, unit in entries
        ]

    def kitchen_supplier(self):
        """生成供应商名"""
        return f"{self.generator.last_name()}{self.random_element(self.supplier_suffixes)}"

    def batch_number(self):
        return f"LOT-{self.numerify('####')}"


# 初始化 Faker 并添加自定义 Provider
fake = Faker('zh_CN')
fake.add_provider(KitchenProvider)
