from decimal import Decimal
from typing import Iterable, Mapping, Optional
import structlog

from models import Account, ProcessingSummary, TransactionRecord, TransactionType
from repositories import (
    AccountRepository,
    InMemoryAccountRepository,
    InMemoryTransactionLedger,
    TransactionLedger,
)
from exceptions import (
    AccountInvariantError,
    InsufficientFundsError,
    PaymentsError,
    UnknownTransactionTypeError,
)

# Configure structured logging
logger = structlog.get_logger()


class TransactionService:
    """Applies transactions, in input order, to per-client accounts.

    Deposits and withdrawals are recorded in the ledger under their own id.
    Disputes, resolves and chargebacks carry the id of an earlier transaction
    and always take the amount from that ledger entry, never from the record.
    After a dispute step succeeds the ledger entry is rewritten with the step's
    type, so a resolve or chargeback only matches an entry currently under
    dispute.
    """

    def __init__(
        self,
        account_repo: AccountRepository,
        ledger: TransactionLedger,
        check_invariants: bool = True,
    ):
        self.account_repo = account_repo
        self.ledger = ledger
        self.check_invariants = check_invariants
        self.summary: Optional[ProcessingSummary] = None

    def accounts(self) -> Mapping[int, Account]:
        return self.account_repo.all()

    def process(self, records: Iterable[TransactionRecord]) -> ProcessingSummary:
        """Apply every record in order, stopping at the first fatal error.

        Nothing is rolled back: on error the accounts keep every change made
        before the failing record. The error is noted on ``self.summary`` and
        re-raised.
        """
        summary = ProcessingSummary()
        self.summary = summary

        try:
            for transaction in records:
                summary.transactions_read += 1
                if self.apply(transaction):
                    summary.transactions_applied += 1
                else:
                    summary.transactions_ignored += 1
        except PaymentsError as e:
            summary.error = str(e)
            logger.error(
                "Processing stopped",
                error=str(e),
                error_type=type(e).__name__,
                transactions_read=summary.transactions_read
            )
            raise
        finally:
            summary.accounts_count = self.account_repo.count()
            summary.ledger_size = self.ledger.count()
            logger.info("Processing finished", **summary.model_dump())

        return summary

    def apply(self, transaction: TransactionRecord) -> bool:
        """Apply a single transaction.

        Returns False when a dispute step was ignored because its reference
        is missing or not under dispute. Raises a TransactionApplyError for
        fatal errors.
        """
        logger.debug(
            "Applying transaction",
            client=transaction.client,
            tx=transaction.tx,
            type=transaction.type,
            amount=str(transaction.amount) if transaction.amount is not None else None
        )

        account = self.account_repo.get_or_create(transaction.client)

        if transaction.type == TransactionType.deposit:
            applied = self._process_deposit(transaction, account)
        elif transaction.type == TransactionType.withdrawal:
            applied = self._process_withdrawal(transaction, account)
        elif transaction.type == TransactionType.dispute:
            applied = self._process_dispute(transaction, account)
        elif transaction.type == TransactionType.resolve:
            applied = self._process_resolve(transaction, account)
        elif transaction.type == TransactionType.chargeback:
            applied = self._process_chargeback(transaction, account)
        else:
            logger.error(
                "Invalid transaction type",
                type=transaction.type,
                tx=transaction.tx
            )
            raise UnknownTransactionTypeError(transaction)

        if applied and self.check_invariants and not account.is_consistent():
            logger.error(
                "Account invariant violated",
                client=account.client,
                tx=transaction.tx,
                available=str(account.available),
                held=str(account.held),
                total=str(account.total)
            )
            raise AccountInvariantError(transaction, account)

        return applied

    def _process_deposit(self, transaction: TransactionRecord, account: Account) -> bool:
        """Process deposit transaction."""
        self.ledger.record(transaction)

        account.available += transaction.amount
        account.total += transaction.amount

        self._log_balance("Deposit processed", transaction, account, transaction.amount)
        return True

    def _process_withdrawal(self, transaction: TransactionRecord, account: Account) -> bool:
        """Process withdrawal transaction."""
        if not account.available > transaction.amount:
            logger.warning(
                "Insufficient funds for withdrawal",
                client=account.client,
                tx=transaction.tx,
                available=str(account.available),
                requested_amount=str(transaction.amount)
            )
            raise InsufficientFundsError(transaction, account.available)

        self.ledger.record(transaction)

        account.available -= transaction.amount
        account.total -= transaction.amount

        self._log_balance("Withdrawal processed", transaction, account, transaction.amount)
        return True

    def _process_dispute(self, transaction: TransactionRecord, account: Account) -> bool:
        disputed = self.ledger.lookup(transaction.tx)
        if disputed is None:
            self._log_ignored("referenced transaction not found", transaction)
            return False

        amount = disputed.amount
        account.available -= amount
        account.held += amount
        self._mark(disputed, transaction.type)

        self._log_balance("Dispute processed", transaction, account, amount)
        return True

    def _process_resolve(self, transaction: TransactionRecord, account: Account) -> bool:
        disputed = self._under_dispute(transaction)
        if disputed is None:
            return False

        amount = disputed.amount
        account.available += amount
        account.held -= amount
        self._mark(disputed, transaction.type)

        self._log_balance("Resolve processed", transaction, account, amount)
        return True

    def _process_chargeback(self, transaction: TransactionRecord, account: Account) -> bool:
        disputed = self._under_dispute(transaction)
        if disputed is None:
            return False

        amount = disputed.amount
        account.held -= amount
        account.total -= amount
        account.locked = True
        self._mark(disputed, transaction.type)

        self._log_balance("Chargeback processed", transaction, account, amount)
        logger.info("Account locked", client=account.client, tx=transaction.tx)
        return True

    def _under_dispute(self, transaction: TransactionRecord) -> Optional[TransactionRecord]:
        """Ledger entry referenced by a resolve/chargeback, if it is currently disputed."""
        referenced = self.ledger.lookup(transaction.tx)
        if referenced is None:
            self._log_ignored("referenced transaction not found", transaction)
            return None
        if referenced.type != TransactionType.dispute:
            self._log_ignored(
                "referenced transaction is not under dispute",
                transaction,
                referenced_type=referenced.type.value
            )
            return None
        return referenced

    def _mark(self, entry: TransactionRecord, step: TransactionType) -> None:
        # Amount and owning client of the original entry are kept
        self.ledger.replace(entry.model_copy(update={"type": step}))

    def _log_ignored(self, reason: str, transaction: TransactionRecord, **extra) -> None:
        logger.info(
            "Transaction ignored",
            reason=reason,
            client=transaction.client,
            tx=transaction.tx,
            type=transaction.type.value,
            **extra
        )

    def _log_balance(
        self,
        event: str,
        transaction: TransactionRecord,
        account: Account,
        amount: Decimal
    ) -> None:
        logger.debug(
            event,
            client=account.client,
            tx=transaction.tx,
            amount=str(amount),
            available=str(account.available),
            held=str(account.held),
            total=str(account.total),
            locked=account.locked
        )


# Factory function for dependency injection
def get_transaction_service(
    account_repo: Optional[AccountRepository] = None,
    ledger: Optional[TransactionLedger] = None,
    check_invariants: bool = True
) -> TransactionService:
    return TransactionService(
        account_repo if account_repo is not None else InMemoryAccountRepository(),
        ledger if ledger is not None else InMemoryTransactionLedger(),
        check_invariants=check_invariants,
    )
