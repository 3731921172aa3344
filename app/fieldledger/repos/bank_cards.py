from sqlalchemy import delete, or_, select

from app.fieldledger.db.models import REPORT_REFERENCE_TYPE, BankCard, BankCardTransaction


class BankCardRepository:
    def __init__(self, db):
        self.db = db

    def get_by_id(self, card_id):
        return self.db.get(BankCard, card_id)

    def list_cards(self, *, active_only: bool = False):
        stmt = select(BankCard)
        if active_only:
            stmt = stmt.where(BankCard.is_active.is_(True))
        stmt = stmt.order_by(BankCard.created_at.desc())
        return self.db.execute(stmt).scalars().all()

    def create(self, card: BankCard) -> BankCard:
        self.db.add(card)
        self.db.commit()
        self.db.refresh(card)
        return card

    def update(self, card: BankCard) -> BankCard:
        self.db.add(card)
        self.db.commit()
        self.db.refresh(card)
        return card


class BankCardTransactionRepository:
    def __init__(self, db):
        self.db = db

    def list_for_card(self, card_id, *, limit: int | None = None, offset: int | None = None):
        stmt = (
            select(BankCardTransaction)
            .where(BankCardTransaction.bank_card_id == card_id)
            .order_by(BankCardTransaction.created_at.desc())
        )
        if offset:
            stmt = stmt.offset(offset)
        if limit:
            stmt = stmt.limit(limit)
        return self.db.execute(stmt).scalars().all()

    def list_manual_for_card(self, card_id):
        stmt = select(BankCardTransaction).where(
            BankCardTransaction.bank_card_id == card_id,
            or_(
                BankCardTransaction.reference_type.is_(None),
                BankCardTransaction.reference_type != REPORT_REFERENCE_TYPE,
            ),
        )
        return self.db.execute(stmt).scalars().all()

    def delete_report_entries(self, *, card_id, report_id: str) -> int:
        result = self.db.execute(
            delete(BankCardTransaction).where(
                BankCardTransaction.bank_card_id == card_id,
                BankCardTransaction.reference_type == REPORT_REFERENCE_TYPE,
                BankCardTransaction.reference_id == report_id,
            )
        )
        return result.rowcount or 0

    def add_all(self, entries: list) -> None:
        if entries:
            self.db.add_all(entries)
