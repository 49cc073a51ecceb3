from abc import ABC, abstractmethod
from typing import Dict, Mapping, Optional
from types import MappingProxyType

from models import Account, TransactionRecord
from exceptions import DuplicateTransactionError


class TransactionLedger(ABC):
    @abstractmethod
    def record(self, transaction: TransactionRecord) -> None:
        """Store a new transaction. Raises DuplicateTransactionError if the id is taken."""
        pass

    @abstractmethod
    def replace(self, transaction: TransactionRecord) -> None:
        """Store a transaction under its id, overwriting any existing entry."""
        pass

    @abstractmethod
    def lookup(self, tx_id: int) -> Optional[TransactionRecord]:
        """Get stored transaction by id. Returns None if it was never recorded."""
        pass

    @abstractmethod
    def count(self) -> int:
        """Get total number of stored transactions."""
        pass


class AccountRepository(ABC):
    @abstractmethod
    def get_or_create(self, client_id: int) -> Account:
        """Get the client's account, opening an empty one on first reference."""
        pass

    @abstractmethod
    def get(self, client_id: int) -> Optional[Account]:
        """Get account. Returns None if the client has not been seen."""
        pass

    @abstractmethod
    def all(self) -> Mapping[int, Account]:
        """Get every account keyed by client id."""
        pass

    @abstractmethod
    def count(self) -> int:
        """Get total number of accounts."""
        pass


class InMemoryTransactionLedger(TransactionLedger):
    def __init__(self):
        self.store: Dict[int, TransactionRecord] = {}

    def record(self, transaction: TransactionRecord) -> None:
        if transaction.tx in self.store:
            raise DuplicateTransactionError(transaction)
        self.store[transaction.tx] = transaction

    def replace(self, transaction: TransactionRecord) -> None:
        self.store[transaction.tx] = transaction

    def lookup(self, tx_id: int) -> Optional[TransactionRecord]:
        return self.store.get(tx_id)

    def count(self) -> int:
        return len(self.store)


class InMemoryAccountRepository(AccountRepository):
    def __init__(self):
        self.accounts: Dict[int, Account] = {}

    def get_or_create(self, client_id: int) -> Account:
        account = self.accounts.get(client_id)
        if account is None:
            account = Account(client=client_id)
            self.accounts[client_id] = account
        return account

    def get(self, client_id: int) -> Optional[Account]:
        return self.accounts.get(client_id)

    def all(self) -> Mapping[int, Account]:
        return MappingProxyType(self.accounts)

    def count(self) -> int:
        return len(self.accounts)
