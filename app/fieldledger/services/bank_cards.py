from datetime import date, datetime

from app.fieldledger.core.error_catalog import AppError, ErrorCatalog
from app.fieldledger.db.models import BankCard
from app.fieldledger.repos.bank_cards import BankCardRepository
from app.fieldledger.services.ledger import LedgerService

_EDITABLE_FIELDS = ("card_name", "bank_name", "card_number", "notes", "is_active")


class BankCardService:
    def __init__(self, db):
        self.db = db
        self.repo = BankCardRepository(db)

    def get(self, card_id) -> BankCard:
        card = self.repo.get_by_id(card_id)
        if card is None:
            raise AppError(ErrorCatalog.BANK_CARD_NOT_FOUND, details={"bank_card_id": str(card_id)})
        return card

    def list_cards(self, *, active_only: bool = False) -> list[BankCard]:
        return list(self.repo.list_cards(active_only=active_only))

    def create(self, payload, *, actor_id: str) -> BankCard:
        now = datetime.utcnow()
        card = self.repo.create(
            BankCard(
                card_name=payload.card_name.strip(),
                bank_name=payload.bank_name.strip(),
                card_number=payload.card_number,
                initial_balance=payload.initial_balance,
                current_balance=payload.initial_balance,
                registration_date=payload.registration_date or date.today(),
                notes=payload.notes,
                is_active=True,
                created_by=actor_id,
                created_at=now,
                updated_at=now,
            )
        )
        LedgerService(self.db).recompute(card.id)
        self.db.refresh(card)
        return card

    def update(self, card_id, payload) -> BankCard:
        card = self.get(card_id)
        changes = payload.model_dump(exclude_unset=True)
        for name in _EDITABLE_FIELDS:
            if name in changes and changes[name] is not None:
                setattr(card, name, changes[name])
        card.updated_at = datetime.utcnow()
        return self.repo.update(card)
