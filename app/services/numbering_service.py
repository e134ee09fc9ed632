"""单号服务 - 生成 STK-YYYYMMDD-NNNN 格式的库存单号"""
from datetime import datetime
from flask import current_app
from sqlalchemy.exc import IntegrityError
from app.extensions import db
from app.exceptions import StoreError
from app.models.stock import StockTransaction, TransactionCounter
from app.utils.unit_of_work import atomic


class TransactionNumberService:
    """
    单号服务

    每个自然日一行计数器，在工作单元内加锁自增；
    计数器首次创建时以当日已存在的最大单号为起点，兼容历史数据。
    计数器的自增随外层事务提交，外层回滚则单号不被占用。
    """

    SEQUENCE_WIDTH = 4

    @staticmethod
    def format_number(day, sequence, prefix=None):
        """day 为 YYYYMMDD 字符串"""
        prefix = prefix or current_app.config['INVENTORY_NUMBER_PREFIX']
        return f"{prefix}-{day}-{sequence:0{TransactionNumberService.SEQUENCE_WIDTH}d}"

    @staticmethod
    def parse_sequence(transaction_number):
        """从单号中解析流水号，格式不符返回 None"""
        parts = (transaction_number or '').rsplit('-', 2)
        if len(parts) != 3 or not parts[2].isdigit():
            return None
        return int(parts[2])

    @staticmethod
    def next_transaction_number(on_date=None):
        """
        生成下一个单号

        Args:
            on_date: 单号日期，默认为当前 UTC 日期
        """
        on_date = on_date or datetime.utcnow().date()
        day = on_date.strftime('%Y%m%d')
        retries = current_app.config['INVENTORY_NUMBER_RETRIES']

        for attempt in range(1, retries + 1):
            with atomic():
                counter = TransactionNumberService._lock_counter(day)
                if counter is None:
                    counter = TransactionNumberService._create_counter(day)
                    if counter is None:
                        current_app.logger.warning(
                            f'单号计数器 {day} 并发创建冲突，重试第 {attempt} 次'
                        )
                        continue

                counter.last_value += 1
                db.session.flush()
                return TransactionNumberService.format_number(day, counter.last_value)

        raise StoreError(f'单号计数器 {day} 分配失败，已重试 {retries} 次')

    @staticmethod
    def _lock_counter(day):
        """读取并锁定当日计数器行 (SELECT ... FOR UPDATE)"""
        return db.session.execute(
            db.select(TransactionCounter)
            .where(TransactionCounter.day == day)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    @staticmethod
    def _create_counter(day):
        """在保存点内创建计数器；并发冲突时回滚保存点并返回 None"""
        seed = TransactionNumberService._latest_sequence(day)
        savepoint = db.session.begin_nested()
        try:
            counter = TransactionCounter(day=day, last_value=seed)
            db.session.add(counter)
            db.session.flush()
            savepoint.commit()
            return counter
        except IntegrityError:
            savepoint.rollback()
            db.session.expire_all()
            return None

    @staticmethod
    def _latest_sequence(day):
        """当日已存在的最大流水号，没有则为 0"""
        prefix = f"{current_app.config['INVENTORY_NUMBER_PREFIX']}-{day}-"
        latest = StockTransaction.query.filter(
            StockTransaction.transaction_number.startswith(prefix)
        ).order_by(StockTransaction.transaction_number.desc()).first()
        if not latest:
            return 0
        return TransactionNumberService.parse_sequence(latest.transaction_number) or 0
