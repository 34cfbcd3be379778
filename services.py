from decimal import Decimal
from typing import Iterable, List, Optional
import structlog

from config import Settings, get_settings
from models import (
    AccountSnapshot,
    DiscardReason,
    ProcessingSummary,
    TransactionOutcome,
    TransactionRecord,
    TransactionStatus,
    TransactionType,
)
from repositories import (
    AccountRepository,
    DisputeRepository,
    InMemoryAccountRepository,
    InMemoryDisputeRepository,
    InMemoryTransactionRepository,
    TransactionRepository,
)

logger = structlog.get_logger()


class TransactionProcessor:
    """Applies transactions, in input order, to the account store and the two ledgers.

    Transactions whose preconditions do not hold are discarded: nothing is mutated and
    the returned outcome carries the reason. No exception is raised for them.

    The three policy flags tighten the rules for inputs the plain state machine accepts:

    - ``reject_duplicate_transaction_ids``: a deposit or withdrawal reusing an applied id
      is discarded instead of overwriting the applied ledger entry.
    - ``enforce_dispute_client_match``: dispute, resolve and chargeback must name the
      client of the referenced transaction.
    - ``reject_duplicate_disputes``: a dispute on a transaction that already has an open
      dispute is discarded instead of holding the funds a second time.
    """

    def __init__(
        self,
        account_repo: AccountRepository,
        transaction_repo: TransactionRepository,
        dispute_repo: DisputeRepository,
        reject_duplicate_transaction_ids: bool = True,
        enforce_dispute_client_match: bool = True,
        reject_duplicate_disputes: bool = True,
    ):
        self.account_repo = account_repo
        self.transaction_repo = transaction_repo
        self.dispute_repo = dispute_repo
        self.reject_duplicate_transaction_ids = reject_duplicate_transaction_ids
        self.enforce_dispute_client_match = enforce_dispute_client_match
        self.reject_duplicate_disputes = reject_duplicate_disputes

        self._handlers = {
            TransactionType.deposit: self._process_deposit,
            TransactionType.withdrawal: self._process_withdrawal,
            TransactionType.dispute: self._process_dispute,
            TransactionType.resolve: self._process_resolve,
            TransactionType.chargeback: self._process_chargeback,
        }

    def process(self, record: TransactionRecord) -> TransactionOutcome:
        """Apply a single transaction or discard it."""
        reason = self._handlers[record.type](record)

        if reason is None:
            logger.debug(
                "Transaction applied",
                tx=record.tx,
                client=record.client,
                type=record.type.value
            )
            return TransactionOutcome(
                tx=record.tx,
                client=record.client,
                type=record.type,
                status=TransactionStatus.applied
            )

        logger.debug(
            "Transaction discarded",
            tx=record.tx,
            client=record.client,
            type=record.type.value,
            reason=reason.value
        )
        return TransactionOutcome(
            tx=record.tx,
            client=record.client,
            type=record.type,
            status=TransactionStatus.discarded,
            reason=reason
        )

    def process_all(self, records: Iterable[TransactionRecord]) -> ProcessingSummary:
        """Apply every record in order and tally the outcomes."""
        summary = ProcessingSummary()
        for record in records:
            summary.record(self.process(record))

        logger.info(
            "Transaction stream processed",
            processed=summary.processed,
            applied=summary.applied,
            discarded=summary.discarded,
            accounts=self.account_repo.count(),
            open_disputes=self.dispute_repo.count()
        )
        return summary

    def snapshot(self) -> List[AccountSnapshot]:
        """Copy of every account, unordered."""
        return [account.snapshot() for account in self.account_repo.all()]

    def _process_deposit(self, record: TransactionRecord) -> Optional[DiscardReason]:
        if record.amount is None:
            return DiscardReason.missing_amount
        if self._is_duplicate(record):
            return DiscardReason.duplicate_transaction

        account = self.account_repo.get(record.client)
        if account is None:
            account = self.account_repo.get_or_create(record.client)
        elif account.locked:
            return DiscardReason.account_locked

        account.available += record.amount
        account.total += record.amount
        self.transaction_repo.insert(record.tx, record)
        return None

    def _process_withdrawal(self, record: TransactionRecord) -> Optional[DiscardReason]:
        if record.amount is None:
            return DiscardReason.missing_amount
        if self._is_duplicate(record):
            return DiscardReason.duplicate_transaction

        account = self.account_repo.get(record.client)
        if account is None:
            return DiscardReason.account_not_found
        if account.locked:
            return DiscardReason.account_locked
        if account.available < record.amount:
            return DiscardReason.insufficient_funds

        account.available -= record.amount
        account.total -= record.amount
        self.transaction_repo.insert(record.tx, record)
        return None

    def _process_dispute(self, record: TransactionRecord) -> Optional[DiscardReason]:
        disputed = self.transaction_repo.lookup(record.tx)
        if disputed is None:
            return DiscardReason.unknown_transaction_reference
        if self.enforce_dispute_client_match and disputed.client != record.client:
            return DiscardReason.client_mismatch

        account, reason = self._unlocked_account(record.client)
        if reason is not None:
            return reason
        if self.reject_duplicate_disputes and self.dispute_repo.lookup(record.tx) is not None:
            return DiscardReason.duplicate_dispute

        amount = disputed.amount
        account.available -= amount
        account.held += amount
        self.dispute_repo.insert(record.tx, amount)
        return None

    def _process_resolve(self, record: TransactionRecord) -> Optional[DiscardReason]:
        amount, account, reason = self._open_dispute(record)
        if reason is not None:
            return reason

        account.available += amount
        account.held -= amount
        self.dispute_repo.remove(record.tx)
        return None

    def _process_chargeback(self, record: TransactionRecord) -> Optional[DiscardReason]:
        amount, account, reason = self._open_dispute(record)
        if reason is not None:
            return reason

        account.held -= amount
        account.total -= amount
        account.locked = True
        self.dispute_repo.remove(record.tx)

        logger.info(
            "Account locked by chargeback",
            client=record.client,
            tx=record.tx,
            amount=str(amount)
        )
        return None

    def _is_duplicate(self, record: TransactionRecord) -> bool:
        return self.reject_duplicate_transaction_ids and self.transaction_repo.contains(record.tx)

    def _unlocked_account(self, client: int):
        account = self.account_repo.get(client)
        if account is None:
            return None, DiscardReason.account_not_found
        if account.locked:
            return None, DiscardReason.account_locked
        return account, None

    def _open_dispute(self, record: TransactionRecord):
        """Resolve and chargeback share their preconditions."""
        amount: Optional[Decimal] = self.dispute_repo.lookup(record.tx)
        if amount is None:
            return None, None, DiscardReason.no_open_dispute

        if self.enforce_dispute_client_match:
            disputed = self.transaction_repo.lookup(record.tx)
            if disputed is None or disputed.client != record.client:
                return None, None, DiscardReason.client_mismatch

        account, reason = self._unlocked_account(record.client)
        if reason is not None:
            return None, None, reason
        return amount, account, None


# Factory function for dependency injection
def get_transaction_processor(settings: Optional[Settings] = None) -> TransactionProcessor:
    """Build a processor over fresh in-memory repositories."""
    settings = settings or get_settings()
    return TransactionProcessor(
        InMemoryAccountRepository(),
        InMemoryTransactionRepository(),
        InMemoryDisputeRepository(),
        reject_duplicate_transaction_ids=settings.reject_duplicate_transaction_ids,
        enforce_dispute_client_match=settings.enforce_dispute_client_match,
        reject_duplicate_disputes=settings.reject_duplicate_disputes,
    )
