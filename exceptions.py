from typing import Optional

from models import TransactionRecord


class PaymentsError(Exception):
    """Base class for errors that stop a processing run."""


class TransactionDecodeError(PaymentsError):
    """Raised when an input row cannot be turned into a transaction record."""

    def __init__(self, detail: str, line: Optional[int] = None):
        self.detail = detail
        self.line = line
        prefix = f"line {line}: " if line is not None else ""
        super().__init__(f"{prefix}{detail}")


class TransactionApplyError(PaymentsError):
    """Raised when a decoded transaction cannot be applied to the accounts."""

    def __init__(self, detail: str, transaction: TransactionRecord):
        self.detail = detail
        self.transaction = transaction
        super().__init__(detail)


class DuplicateTransactionError(TransactionApplyError):
    def __init__(self, transaction: TransactionRecord):
        super().__init__(f"Transaction already exists: {transaction.tx}", transaction)


class InsufficientFundsError(TransactionApplyError):
    def __init__(self, transaction: TransactionRecord, available):
        self.available = available
        super().__init__(
            f"Client {transaction.client} has insufficient funds: {available}",
            transaction,
        )


class UnknownTransactionTypeError(TransactionApplyError):
    def __init__(self, transaction: TransactionRecord):
        super().__init__(f"Unknown transaction type: {transaction.type}", transaction)


class AccountInvariantError(TransactionApplyError):
    """total no longer equals available + held after an update."""

    def __init__(self, transaction: TransactionRecord, account):
        self.account = account
        super().__init__(
            f"Account {account.client} is inconsistent after tx {transaction.tx}: "
            f"total={account.total} available={account.available} held={account.held}",
            transaction,
        )
