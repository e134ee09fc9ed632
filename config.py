import os
from dotenv import load_dotenv

# 加载 .env 环境变量
load_dotenv()
basedir = os.path.abspath(os.path.dirname(__file__))


def env_flag(name, default='false'):
    return os.environ.get(name, default).lower() in ('1', 'true', 'yes')


class Config:
    """基础配置类"""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'hard-to-guess-string'

    # 数据库配置
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_RECORD_QUERIES = True

    # 库存业务配置
    # 临期预警窗口 (天)
    INVENTORY_EXPIRY_WINDOW_DAYS = int(os.environ.get('INVENTORY_EXPIRY_WINDOW_DAYS', 30))
    # 批次不足时是否整单失败 (False 保持原有行为：能扣多少扣多少)
    INVENTORY_STRICT_ALLOCATION = env_flag('INVENTORY_STRICT_ALLOCATION')
    # 是否只允许驳回待审批单据 (False 保持原有行为：任何状态都可驳回)
    INVENTORY_REJECT_PENDING_ONLY = env_flag('INVENTORY_REJECT_PENDING_ONLY')
    # 单号前缀，格式: STK-YYYYMMDD-NNNN
    INVENTORY_NUMBER_PREFIX = os.environ.get('INVENTORY_NUMBER_PREFIX', 'STK')
    # 当日计数器并发创建冲突时的重试次数
    INVENTORY_NUMBER_RETRIES = int(os.environ.get('INVENTORY_NUMBER_RETRIES', 3))
    # 列表默认条数
    INVENTORY_TRANSACTION_LIMIT = 50
    INVENTORY_PENDING_LIMIT = 100

    @staticmethod
    def init_app(app):
        pass


class DevelopmentConfig(Config):
    """开发环境配置"""
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance', 'kitchen_stock.db')

    @classmethod
    def init_app(cls, app):
        Config.init_app(app)
        # SQLite 文件所在目录需要预先存在
        instance_dir = os.path.join(basedir, 'instance')
        if not os.path.exists(instance_dir):
            os.makedirs(instance_dir)


class ProductionConfig(Config):
    """生产环境配置"""
    DEBUG = False

    DATABASE_URL = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance', 'kitchen_stock_prod.db')
    # PostgreSQL URL 修正（部分托管平台使用 postgres://）
    if DATABASE_URL and DATABASE_URL.startswith('postgres://'):
        DATABASE_URL = DATABASE_URL.replace('postgres://', 'postgresql://', 1)

    SQLALCHEMY_DATABASE_URI = DATABASE_URL

    # 多进程部署时保持连接可用
    SQLALCHEMY_ENGINE_OPTIONS = {'pool_pre_ping': True}


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
