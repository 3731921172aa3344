import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable

from app.fieldledger.core.error_catalog import AppError, ErrorCatalog
from app.fieldledger.core.metrics import metrics
from app.fieldledger.db.models import (
    REPORT_REFERENCE_TYPE,
    TRANSFER_REFERENCE_TYPE,
    BankCard,
    BankCardTransaction,
    DailyReport,
)
from app.fieldledger.repos.bank_cards import BankCardRepository, BankCardTransactionRepository
from app.fieldledger.repos.report_rows import ReportRowRepository

logger = logging.getLogger(__name__)

DEPOSIT = "deposit"
WITHDRAWAL = "withdrawal"
TRANSACTION_TYPES = (DEPOSIT, WITHDRAWAL)

ZERO = Decimal("0")


def _money(value) -> Decimal:
    if value is None:
        return ZERO
    return value if isinstance(value, Decimal) else Decimal(str(value))


def manual_net(transactions: Iterable) -> Decimal:
    total = ZERO
    for txn in transactions:
        if txn.reference_type == REPORT_REFERENCE_TYPE:
            continue
        amount = _money(txn.amount)
        total += amount if txn.transaction_type == DEPOSIT else -amount
    return total


def cash_box_net(rows: Iterable) -> Decimal:
    total = ZERO
    for row in rows:
        total += _money(row.amount_received) - _money(row.amount_spent)
    return total


def compute_balance(initial_balance, manual_transactions: Iterable, cash_box_rows: Iterable) -> Decimal:
    """Balance derived from scratch.

    ``initial + net(manual transactions) + net(cash-box rows)``. Report-derived
    log entries are ignored even if passed in, so the result never depends on
    the advisory log.
    """
    return _money(initial_balance) + manual_net(manual_transactions) + cash_box_net(cash_box_rows)


@dataclass
class TransactionView:
    id: str
    bank_card_id: str
    transaction_type: str
    amount: Decimal
    balance_after: Decimal
    description: str | None
    reference_type: str | None
    reference_id: str | None
    created_by: str | None
    created_at: datetime
    report_date: date | None = None
    module_key: str | None = None


class LedgerService:
    def __init__(self, db):
        self.db = db
        self.cards = BankCardRepository(db)
        self.transactions = BankCardTransactionRepository(db)
        self.rows = ReportRowRepository(db)

    def _get_card(self, card_id) -> BankCard:
        card = self.cards.get_by_id(card_id)
        if card is None:
            raise AppError(ErrorCatalog.BANK_CARD_NOT_FOUND, details={"bank_card_id": str(card_id)})
        return card

    def recompute(self, card_id, *, report_id=None, actor_id: str | None = None) -> Decimal:
        card = self._get_card(card_id)
        manual = self.transactions.list_manual_for_card(card.id)
        cash_rows = self.rows.list_cash_box_rows_for_card(card.id)
        balance = compute_balance(card.initial_balance, manual, cash_rows)

        card.current_balance = balance
        card.updated_at = datetime.utcnow()
        self.db.commit()
        metrics.increment_ledger_recompute()

        if report_id is not None:
            contributing = [row for row in cash_rows if row.daily_report_id == report_id]
            self._replace_report_entries(card, report_id, contributing, balance, actor_id)
        return balance

    def recompute_many(self, card_ids: Iterable, *, report_id=None, actor_id: str | None = None) -> dict:
        balances = {}
        for card_id in sorted({card_id for card_id in card_ids if card_id is not None}, key=str):
            if self.cards.get_by_id(card_id) is None:
                logger.warning("Skipping recompute for unknown card %s", card_id)
                continue
            balances[card_id] = self.recompute(card_id, report_id=report_id, actor_id=actor_id)
        return balances

    def recompute_all(self) -> dict:
        return {card.id: self.recompute(card.id) for card in self.cards.list_cards(active_only=True)}

    def _replace_report_entries(self, card: BankCard, report_id, rows: list, balance: Decimal, actor_id) -> None:
        # Log-only history: failure leaves the committed balance untouched.
        try:
            self.transactions.delete_report_entries(card_id=card.id, report_id=str(report_id))
            received = sum((_money(row.amount_received) for row in rows), ZERO)
            spent = sum((_money(row.amount_spent) for row in rows), ZERO)
            entries = []
            if received > 0:
                entries.append(self._report_entry(card, report_id, DEPOSIT, received, balance, actor_id))
            if spent > 0:
                entries.append(self._report_entry(card, report_id, WITHDRAWAL, spent, balance, actor_id))
            self.transactions.add_all(entries)
            self.db.commit()
        except Exception:
            self.db.rollback()
            metrics.increment_advisory_log_failure()
            logger.exception(
                "Failed to replace report-derived transactions",
                extra={"bank_card_id": str(card.id), "report_id": str(report_id)},
            )

    @staticmethod
    def _report_entry(card, report_id, transaction_type, amount, balance, actor_id) -> BankCardTransaction:
        label = "received" if transaction_type == DEPOSIT else "spent"
        return BankCardTransaction(
            bank_card_id=card.id,
            transaction_type=transaction_type,
            amount=amount,
            balance_after=balance,
            description=f"Daily report cash box ({label})",
            reference_type=REPORT_REFERENCE_TYPE,
            reference_id=str(report_id),
            created_by=actor_id,
            created_at=datetime.utcnow(),
        )

    def add_manual_transaction(
        self,
        card_id,
        *,
        transaction_type: str,
        amount: Decimal,
        description: str | None,
        actor_id: str | None,
        reference_type: str | None = None,
        reference_id: str | None = None,
    ) -> BankCardTransaction:
        if transaction_type not in TRANSACTION_TYPES:
            raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "invalid transaction_type"})
        if amount is None or amount <= 0:
            raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "amount must be greater than 0"})
        if reference_type == REPORT_REFERENCE_TYPE:
            raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "reserved reference_type"})
        card = self._get_card(card_id)
        txn = BankCardTransaction(
            bank_card_id=card.id,
            transaction_type=transaction_type,
            amount=amount,
            balance_after=card.current_balance,
            description=description,
            reference_type=reference_type,
            reference_id=reference_id,
            created_by=actor_id,
            created_at=datetime.utcnow(),
        )
        self.db.add(txn)
        self.db.commit()
        txn.balance_after = self.recompute(card.id)
        self.db.commit()
        self.db.refresh(txn)
        return txn

    def transfer(
        self,
        *,
        from_card_id,
        to_card_id,
        amount: Decimal,
        description: str | None,
        actor_id: str | None,
    ) -> tuple[BankCardTransaction, BankCardTransaction]:
        if str(from_card_id) == str(to_card_id):
            raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "cannot transfer to the same card"})
        if amount is None or amount <= 0:
            raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "amount must be greater than 0"})
        source = self._get_card(from_card_id)
        target = self._get_card(to_card_id)
        note = description or f"Transfer {source.card_name} -> {target.card_name}"
        outgoing = BankCardTransaction(
            bank_card_id=source.id,
            transaction_type=WITHDRAWAL,
            amount=amount,
            balance_after=source.current_balance,
            description=note,
            reference_type=TRANSFER_REFERENCE_TYPE,
            reference_id=str(target.id),
            created_by=actor_id,
            created_at=datetime.utcnow(),
        )
        incoming = BankCardTransaction(
            bank_card_id=target.id,
            transaction_type=DEPOSIT,
            amount=amount,
            balance_after=target.current_balance,
            description=note,
            reference_type=TRANSFER_REFERENCE_TYPE,
            reference_id=str(source.id),
            created_by=actor_id,
            created_at=datetime.utcnow(),
        )
        self.db.add_all([outgoing, incoming])
        self.db.commit()
        outgoing.balance_after = self.recompute(source.id)
        incoming.balance_after = self.recompute(target.id)
        self.db.commit()
        return outgoing, incoming

    def list_transactions(self, card_id, *, limit: int | None = None, offset: int | None = None) -> list[TransactionView]:
        card = self._get_card(card_id)
        txns = self.transactions.list_for_card(card.id, limit=limit, offset=offset)
        report_ids = {
            txn.reference_id for txn in txns if txn.reference_type == REPORT_REFERENCE_TYPE and txn.reference_id
        }
        reports = {}
        for report_id in report_ids:
            report = self.db.get(DailyReport, uuid.UUID(report_id))
            if report is not None:
                reports[report_id] = report
        views = []
        for txn in txns:
            report = reports.get(txn.reference_id) if txn.reference_type == REPORT_REFERENCE_TYPE else None
            views.append(
                TransactionView(
                    id=str(txn.id),
                    bank_card_id=str(txn.bank_card_id),
                    transaction_type=txn.transaction_type,
                    amount=txn.amount,
                    balance_after=txn.balance_after,
                    description=txn.description,
                    reference_type=txn.reference_type,
                    reference_id=txn.reference_id,
                    created_by=txn.created_by,
                    created_at=txn.created_at,
                    report_date=report.report_date if report else None,
                    module_key=report.module_key if report else None,
                )
            )
        return views
