import re
from datetime import date

import pytest

from app.exceptions import StoreError
from app.extensions import db
from app.models.stock import StockTransaction, TransactionCounter
from app.services.numbering_service import TransactionNumberService

NUMBER_PATTERN = re.compile(r'^STK-\d{8}-\d{4}$')


class TestFormat:

    def test_format_number(self, app):
        assert TransactionNumberService.format_number('20260115', 7) == 'STK-20260115-0007'

    def test_format_number_custom_prefix(self, app):
        assert TransactionNumberService.format_number('20260115', 12, prefix='INV') == 'INV-20260115-0012'

    def test_parse_sequence(self, app):
        assert TransactionNumberService.parse_sequence('STK-20260115-0042') == 42
        assert TransactionNumberService.parse_sequence('garbage') is None
        assert TransactionNumberService.parse_sequence(None) is None


class TestNextNumber:

    def test_sequence_increases_within_a_day(self, app):
        day = date(2026, 1, 15)
        first = TransactionNumberService.next_transaction_number(day)
        second = TransactionNumberService.next_transaction_number(day)

        assert first == 'STK-20260115-0001'
        assert second == 'STK-20260115-0002'
        assert NUMBER_PATTERN.match(first)

    def test_sequence_restarts_each_day(self, app):
        TransactionNumberService.next_transaction_number(date(2026, 1, 15))
        TransactionNumberService.next_transaction_number(date(2026, 1, 15))

        assert TransactionNumberService.next_transaction_number(date(2026, 1, 16)) == 'STK-20260116-0001'
        assert TransactionCounter.query.count() == 2

    def test_counter_seeded_from_existing_numbers(self, app):
        db.session.add(StockTransaction(
            transaction_number='STK-20260115-0007',
            type=StockTransaction.TYPE_RECEIVE,
            status=StockTransaction.STATUS_APPROVED,
            requested_by='legacy',
        ))
        db.session.commit()

        assert TransactionNumberService.next_transaction_number(date(2026, 1, 15)) == 'STK-20260115-0008'

    def test_created_transactions_have_unique_numbers(self, app, stock_item, receive):
        numbers = {receive(stock_item, 1).transaction_number for _ in range(5)}

        assert len(numbers) == 5
        assert all(NUMBER_PATTERN.match(n) for n in numbers)


class TestCounterCreationConflict:

    def test_retries_when_counter_appears_concurrently(self, app, monkeypatch):
        day = date(2026, 3, 1)
        assert TransactionNumberService.next_transaction_number(day) == 'STK-20260301-0001'

        real_lock = TransactionNumberService._lock_counter
        misses = []

        def lock_missing_once(counter_day):
            # 第一次读不到计数器行，模拟另一个请求刚刚创建了它
            if not misses:
                misses.append(counter_day)
                return None
            return real_lock(counter_day)

        monkeypatch.setattr(TransactionNumberService, '_lock_counter', staticmethod(lock_missing_once))

        assert TransactionNumberService.next_transaction_number(day) == 'STK-20260301-0002'
        assert misses == ['20260301']
        assert TransactionCounter.query.count() == 1

    def test_gives_up_after_configured_retries(self, app, monkeypatch):
        day = date(2026, 3, 1)
        TransactionNumberService.next_transaction_number(day)
        calls = []

        def lock_always_missing(counter_day):
            calls.append(counter_day)
            return None

        monkeypatch.setattr(TransactionNumberService, '_lock_counter', staticmethod(lock_always_missing))

        with pytest.raises(StoreError):
            TransactionNumberService.next_transaction_number(day)
        assert len(calls) == app.config['INVENTORY_NUMBER_RETRIES']

        monkeypatch.undo()
        assert TransactionNumberService.next_transaction_number(day) == 'STK-20260301-0002'
