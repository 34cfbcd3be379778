from abc import ABC, abstractmethod
from typing import Dict, List, Optional
from decimal import Decimal
from models import Account, TransactionRecord


class AccountRepository(ABC):
    @abstractmethod
    def get(self, client: int) -> Optional[Account]:
        """Get account. Returns None if the client has no account yet."""
        pass

    @abstractmethod
    def get_or_create(self, client: int) -> Account:
        """Get account, creating a zeroed unlocked one if missing."""
        pass

    @abstractmethod
    def all(self) -> List[Account]:
        """Get every account, in no particular order."""
        pass

    @abstractmethod
    def count(self) -> int:
        """Get total number of accounts."""
        pass


class TransactionRepository(ABC):
    @abstractmethod
    def insert(self, tx: int, record: TransactionRecord) -> None:
        """Store an applied deposit or withdrawal, replacing any entry with the same id."""
        pass

    @abstractmethod
    def lookup(self, tx: int) -> Optional[TransactionRecord]:
        """Get applied transaction by id."""
        pass

    @abstractmethod
    def contains(self, tx: int) -> bool:
        pass

    @abstractmethod
    def count(self) -> int:
        """Get total number of applied transactions."""
        pass


class DisputeRepository(ABC):
    @abstractmethod
    def insert(self, tx: int, amount: Decimal) -> None:
        """Open a dispute for the given transaction id."""
        pass

    @abstractmethod
    def remove(self, tx: int) -> Optional[Decimal]:
        """Close a dispute. Returns the held amount, or None if none was open."""
        pass

    @abstractmethod
    def lookup(self, tx: int) -> Optional[Decimal]:
        """Get the amount held by an open dispute."""
        pass

    @abstractmethod
    def count(self) -> int:
        """Get total number of open disputes."""
        pass


class InMemoryAccountRepository(AccountRepository):
    def __init__(self):
        self.accounts: Dict[int, Account] = {}

    def get(self, client: int) -> Optional[Account]:
        return self.accounts.get(client)

    def get_or_create(self, client: int) -> Account:
        account = self.accounts.get(client)
        if account is None:
            account = Account(client=client)
            self.accounts[client] = account
        return account

    def all(self) -> List[Account]:
        return list(self.accounts.values())

    def count(self) -> int:
        return len(self.accounts)


class InMemoryTransactionRepository(TransactionRepository):
    def __init__(self):
        self.store: Dict[int, TransactionRecord] = {}

    def insert(self, tx: int, record: TransactionRecord) -> None:
        self.store[tx] = record

    def lookup(self, tx: int) -> Optional[TransactionRecord]:
        return self.store.get(tx)

    def contains(self, tx: int) -> bool:
        return tx in self.store

    def count(self) -> int:
        return len(self.store)


class InMemoryDisputeRepository(DisputeRepository):
    def __init__(self):
        self.store: Dict[int, Decimal] = {}

    def insert(self, tx: int, amount: Decimal) -> None:
        self.store[tx] = amount

    def remove(self, tx: int) -> Optional[Decimal]:
        return self.store.pop(tx, None)

    def lookup(self, tx: int) -> Optional[Decimal]:
        return self.store.get(tx)

    def count(self) -> int:
        return len(self.store)
