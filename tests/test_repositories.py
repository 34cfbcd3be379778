from decimal import Decimal

from models import Account, TransactionRecord
from repositories import (
    InMemoryAccountRepository,
    InMemoryDisputeRepository,
    InMemoryTransactionRepository,
)


class TestAccountRepository:
    """Account store lookups."""

    def test_get_missing_account(self):
        repo = InMemoryAccountRepository()

        assert repo.get(1) is None
        assert repo.count() == 0

    def test_get_or_create_is_lazy_and_stable(self):
        repo = InMemoryAccountRepository()

        created = repo.get_or_create(3)
        again = repo.get_or_create(3)

        assert created is again
        assert created == Account(client=3)
        assert created.locked is False
        assert repo.count() == 1

    def test_mutation_through_returned_account(self):
        repo = InMemoryAccountRepository()
        repo.get_or_create(1).available += Decimal("2.5")

        assert repo.get(1).available == Decimal("2.5")

    def test_all(self):
        repo = InMemoryAccountRepository()
        repo.get_or_create(2)
        repo.get_or_create(1)

        assert sorted(a.client for a in repo.all()) == [1, 2]


class TestTransactionRepository:
    """Applied-transaction ledger."""

    def test_insert_and_lookup(self):
        repo = InMemoryTransactionRepository()
        record = TransactionRecord(type="deposit", client=1, tx=10, amount=Decimal("1.0"))
        repo.insert(10, record)

        assert repo.lookup(10) == record
        assert repo.contains(10)
        assert not repo.contains(11)
        assert repo.lookup(11) is None

    def test_insert_overwrites(self):
        repo = InMemoryTransactionRepository()
        repo.insert(1, TransactionRecord(type="deposit", client=1, tx=1, amount=Decimal("1.0")))
        repo.insert(1, TransactionRecord(type="withdrawal", client=2, tx=1, amount=Decimal("2.0")))

        assert repo.count() == 1
        assert repo.lookup(1).client == 2


class TestDisputeRepository:
    """Open-dispute ledger."""

    def test_insert_lookup_remove(self):
        repo = InMemoryDisputeRepository()
        repo.insert(5, Decimal("3.0"))

        assert repo.lookup(5) == Decimal("3.0")
        assert repo.count() == 1
        assert repo.remove(5) == Decimal("3.0")
        assert repo.lookup(5) is None
        assert repo.count() == 0

    def test_remove_missing(self):
        repo = InMemoryDisputeRepository()

        assert repo.remove(42) is None
