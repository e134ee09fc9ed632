import click
import random
from datetime import datetime, timedelta
from flask.cli import with_appcontext
from app.extensions import db
from app.models.catalog import Item
from app.models.stock import StockItem, StockBatch, StockTransaction
from app.services.inventory_service import InventoryService
from app.services.kpi_service import InventoryKPIService
from app.services.stock_action_service import StockActionService
from app.utils.fake_gen import fake

SEED_USER = 'admin'


@click.command('status')
@with_appcontext
def status():
    """
    [验证指令] 查看当前数据库中的库存数据统计。
    """
    click.echo(click.style('📊 库存数据库状态:', fg='cyan', bold=True))

    try:
        click.echo(f" - 目录物料 (Items): \t{Item.query.count()}")
        click.echo(f" - 库存项 (Stock items): \t{StockItem.query.count()}")
        click.echo(f" - 批次 (Batches): \t{StockBatch.query.count()}")
        for tx_status in StockTransaction.STATUSES:
            count = StockTransaction.query.filter_by(status=tx_status).count()
            click.echo(f" - 单据 {tx_status}: \t{count}")

        if Item.query.count() > 0:
            click.echo(click.style('✔ 数据库连接正常，数据已存在。', fg='green'))
        else:
            click.echo(click.style('⚠ 数据库为空，请运行 flask forge 生成数据。', fg='yellow'))

    except Exception as e:
        click.echo(click.style(f'✘ 数据库读取失败: {str(e)}', fg='red'))
        click.echo("请检查是否执行了 'flask db upgrade'")


@click.command('kpi')
@with_appcontext
def kpi():
    """[看板指令] 输出当前库存 KPI。"""
    data = InventoryKPIService.get_inventory_kpis()
    click.echo(click.style('📦 库存看板:', fg='cyan', bold=True))
    click.echo(f" - 库存项数量: \t{data['total_items']}")
    click.echo(f" - 库存总金额: \t{data['total_value']:.2f}")
    click.echo(f" - 低库存: \t{data['low_stock_count']}")
    click.echo(f" - 临期批次: \t{data['expiring_soon_count']}")
    click.echo(f" - 待审批单据: \t{data['pending_transaction_count']}")
    click.echo(f" - 今日入库: \t{data['today_received']}")
    click.echo(f" - 今日出库: \t{data['today_withdrawn']}")


@click.command('forge')
@click.option('--scale', default=1, help='数据规模倍数 (每个物料收货批次数)')
@with_appcontext
def forge(scale):
    """
    [初始化指令] 重建数据表并生成演示数据。
    警告：这将清除数据库中的现有数据！
    """
    click.echo(click.style(f'⚡ 初始化库存演示数据 (规模: {scale}x)...', fg='cyan', bold=True))

    # 1. 清除旧数据
    db.drop_all()
    db.create_all()

    # 2. 物料目录
    click.echo('正在建立物料目录...')
    items = init_catalog()

    # 3. 收货入库 (走正式单据流程，自动生成批次)
    click.echo('正在生成收货单据...')
    init_receipts(items, scale)

    # 4. 领用申请 (待审批)
    click.echo('正在生成领用申请...')
    init_withdrawals()

    click.echo(click.style('✔ 库存演示数据构建完成！', fg='green', bold=True))


def init_catalog():
    """初始化目录物料与库存档案"""
    items = []
    for i, (category, name, unit) in enumerate(fake.kitchen_items(), start=1):
        item = Item(
            code=f"ITEM-{i:03d}",
            name=name,
            unit=unit,
            type='包材' if category == '包材' else '原料',
            category=category,
            supplier1=fake.kitchen_supplier(),
            supplier2=fake.kitchen_supplier() if random.random() < 0.5 else None,
        )
        db.session.add(item)
        items.append(item)
    db.session.commit()

    for item in items:
        min_qty = random.choice([None, 5, 10, 20])
        InventoryService.create_stock_item(
            item.code,
            min_quantity=min_qty,
            max_quantity=min_qty * 10 if min_qty else None,
            location=random.choice(['冷库', '冷冻库', '干货仓', '吧台']),
        )
    click.echo(f'  ✓ 已创建 {len(items)} 个物料')
    return items


def init_receipts(items, scale=1):
    """每个物料收货 scale 个批次"""
    today = datetime.utcnow().date()
    count = 0
    for _ in range(scale):
        for item in items:
            expiry = today + timedelta(days=random.randint(-3, 120)) if item.type == '原料' else None
            StockActionService.receive_items(
                [{
                    'item_code': item.code,
                    'quantity': random.randint(5, 60),
                    'unit_cost': round(random.uniform(10, 400), 2),
                    'batch_number': fake.batch_number(),
                    'expiry_date': expiry.isoformat() if expiry else None,
                }],
                SEED_USER,
                description='期初入库',
                reference=f"INV-{fake.numerify('######')}",
            )
            count += 1
    click.echo(f'  ✓ 已创建 {count} 张收货单')


def init_withdrawals():
    """随机生成几张待审批的领用单"""
    stock_items = StockItem.query.filter(StockItem.current_quantity > 0).all()
    picked = random.sample(stock_items, k=min(5, len(stock_items)))
    for stock_item in picked:
        StockActionService.withdraw_items(
            [{
                'stock_item_id': stock_item.id,
                'quantity': max(1, int(stock_item.current_quantity) // 4),
                'purpose': random.choice(['午市备料', '晚市备料', '员工餐']),
            }],
            f"staff{random.randint(1, 9)}",
            description='厨房领料',
        )
    click.echo(f'  ✓ 已创建 {len(picked)} 张领用申请')
