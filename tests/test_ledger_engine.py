import uuid
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import select

from app.fieldledger.core.error_catalog import AppError
from app.fieldledger.db.models import REPORT_REFERENCE_TYPE, BankCard, BankCardTransaction
from app.fieldledger.repos.bank_cards import BankCardTransactionRepository
from app.fieldledger.services.ledger import DEPOSIT, WITHDRAWAL, LedgerService, compute_balance
from tests.helpers import add_manual_transaction, cash_box, create_card, create_report, worker


def _report_entries(db, card_id):
    stmt = select(BankCardTransaction).where(
        BankCardTransaction.bank_card_id == card_id,
        BankCardTransaction.reference_type == REPORT_REFERENCE_TYPE,
    )
    return db.execute(stmt).scalars().all()


def test_compute_balance_formula():
    manual = [
        SimpleNamespace(transaction_type=DEPOSIT, amount=Decimal("200"), reference_type=None),
        SimpleNamespace(transaction_type=WITHDRAWAL, amount=Decimal("300"), reference_type="card_transfer"),
        SimpleNamespace(transaction_type=DEPOSIT, amount=Decimal("999"), reference_type=REPORT_REFERENCE_TYPE),
    ]
    rows = [
        SimpleNamespace(amount_received=Decimal("100"), amount_spent=Decimal("40")),
        SimpleNamespace(amount_received=None, amount_spent=Decimal("10")),
    ]

    assert compute_balance(Decimal("1000"), manual[:2], []) == Decimal("900")
    assert compute_balance(Decimal("1000"), manual, rows) == Decimal("950")


def test_recompute_is_idempotent_and_replaces_report_entries(db_session):
    card = create_card(db_session, initial_balance="1000.00")
    add_manual_transaction(db_session, card, transaction_type=DEPOSIT, amount="200")
    add_manual_transaction(db_session, card, transaction_type=WITHDRAWAL, amount="300")
    report = create_report(
        db_session,
        created_by="user-1",
        staff=[cash_box(card.id, received="100", spent="40"), worker("Ana")],
    )
    ledger = LedgerService(db_session)

    first = ledger.recompute(card.id, report_id=report.id, actor_id="user-1")
    second = ledger.recompute(card.id, report_id=report.id, actor_id="user-1")

    assert first == second == Decimal("960")
    entries = _report_entries(db_session, card.id)
    assert sorted((entry.transaction_type, entry.amount) for entry in entries) == [
        (DEPOSIT, Decimal("100")),
        (WITHDRAWAL, Decimal("40")),
    ]
    assert {entry.reference_id for entry in entries} == {str(report.id)}


def test_report_entries_never_feed_the_balance(db_session):
    card = create_card(db_session, initial_balance="500.00")
    add_manual_transaction(
        db_session, card, transaction_type=DEPOSIT, amount="10000", reference_type=REPORT_REFERENCE_TYPE
    )

    assert LedgerService(db_session).recompute(card.id) == Decimal("500")


def test_balance_survives_log_failure(db_session, session_factory, monkeypatch):
    card = create_card(db_session, initial_balance="1000.00")
    report = create_report(db_session, created_by="user-1", staff=[cash_box(card.id, spent="250")])

    def fail(self, entries):
        raise RuntimeError("log table unavailable")

    monkeypatch.setattr(BankCardTransactionRepository, "add_all", fail)

    balance = LedgerService(db_session).recompute(card.id, report_id=report.id)

    assert balance == Decimal("750")
    fresh = session_factory()
    try:
        assert fresh.get(BankCard, card.id).current_balance == Decimal("750")
        assert _report_entries(fresh, card.id) == []
    finally:
        fresh.close()


def test_recompute_unknown_card(db_session):
    with pytest.raises(AppError) as exc:
        LedgerService(db_session).recompute(uuid.uuid4())

    assert exc.value.error.code == "BANK_CARD_NOT_FOUND"


def test_recompute_many_skips_unknown_cards(db_session):
    card = create_card(db_session, initial_balance="10.00")

    balances = LedgerService(db_session).recompute_many([card.id, uuid.uuid4(), None, card.id])

    assert balances == {card.id: Decimal("10")}


def test_manual_transaction_rules(db_session):
    card = create_card(db_session, initial_balance="100.00")
    ledger = LedgerService(db_session)

    txn = ledger.add_manual_transaction(
        card.id, transaction_type=WITHDRAWAL, amount=Decimal("30"), description="fuel", actor_id="manager-1"
    )
    assert txn.balance_after == Decimal("70")

    for kwargs in (
        {"transaction_type": "refund", "amount": Decimal("1")},
        {"transaction_type": DEPOSIT, "amount": Decimal("0")},
        {"transaction_type": DEPOSIT, "amount": Decimal("5"), "reference_type": REPORT_REFERENCE_TYPE},
    ):
        with pytest.raises(AppError) as exc:
            ledger.add_manual_transaction(card.id, description=None, actor_id="manager-1", **kwargs)
        assert exc.value.error.code == "VALIDATION_ERROR"


def test_transfer_moves_money_between_cards(db_session):
    source = create_card(db_session, name="Source", initial_balance="100.00")
    target = create_card(db_session, name="Target", initial_balance="0.00")
    ledger = LedgerService(db_session)

    outgoing, incoming = ledger.transfer(
        from_card_id=source.id, to_card_id=target.id, amount=Decimal("40"), description=None, actor_id="m"
    )

    assert outgoing.balance_after == Decimal("60")
    assert incoming.balance_after == Decimal("40")
    assert ledger.recompute(source.id) == Decimal("60")

    with pytest.raises(AppError):
        ledger.transfer(from_card_id=source.id, to_card_id=source.id, amount=Decimal("1"), description=None, actor_id="m")
