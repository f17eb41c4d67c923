# isp_billing/services/debt_service.py
"""
Debt operations on top of the pure ledger.

The client's `debt` column is the authoritative balance. Debt records
(`debts` table) break it down into individual charges; every record
operation moves the client balance in the same commit. Each successful
mutation leaves exactly one entry in the message log.
"""
import logging
import uuid
from datetime import date, datetime
from typing import List, Optional

from sqlmodel import Session, select

from ..billing import ledger
from ..billing.money import format_amount, from_cents, to_cents
from ..core.constants import MessageChannel, MessageType
from ..core.exceptions import InvalidAmountError, NotFound
from ..models import Client, DebtRecord
from .client_service import ClientService
from .message_service import MessageService
from .settings_service import SettingsService

logger = logging.getLogger(__name__)


class DebtService:
    def __init__(self, session: Session):
        self.session = session
        self.client_service = ClientService(session)
        self.message_service = MessageService(session)
        self.settings_service = SettingsService(session)

    def _currency(self) -> str:
        return self.settings_service.get_setting("currency_symbol") or "KES"

    def _log(self, client_id: uuid.UUID, text: str, message_type: MessageType):
        self.message_service.record_message(
            client_id, text, channel=MessageChannel.SYSTEM, message_type=message_type
        )

    def _save(self, *records):
        try:
            now = datetime.utcnow()
            for record in records:
                record.updated_at = now
                self.session.add(record)
            self.session.commit()
            for record in records:
                self.session.refresh(record)
        except Exception:
            self.session.rollback()
            raise

    # --- Client balance ---
    def list_clients_with_debt(self) -> List[Client]:
        statement = select(Client).where(Client.debt > 0).order_by(Client.debt.desc())
        return list(self.session.exec(statement).all())

    def add_charge(self, client_id: uuid.UUID, amount, reason: Optional[str] = None) -> Client:
        """
        Adds an additional charge to the client's balance.

        Raises:
            NotFound, InvalidAmountError
        """
        client = self.client_service.get_client_by_id(client_id)
        new_debt = ledger.accrue(client.debt, amount)
        client.debt = float(new_debt)
        self._save(client)

        currency = self._currency()
        text = f"Dear {client.name}, an additional charge of {format_amount(amount, currency)} was added to your account"
        if reason:
            text += f" ({reason})"
        text += f". Outstanding balance: {format_amount(new_debt, currency)}."
        self._log(client.id, text, MessageType.DEBT_CHARGE)
        logger.info(f"Charge of {amount} added to client {client_id}, debt now {new_debt}")
        return client

    def pay_client_debt(self, client_id: uuid.UUID, amount) -> Client:
        """
        Partial or full payment against the client's balance. The amount is
        also collected on the client's open debt records, oldest first.

        Raises:
            NotFound, InvalidAmountError (amount <= 0 or above the balance)
        """
        client = self.client_service.get_client_by_id(client_id)
        result = ledger.apply_payment(client.debt, amount)
        client.debt = float(result.remaining)
        settled = self._collect_oldest_first(client_id, to_cents(amount))
        self._save(client, *settled)

        currency = self._currency()
        if result.fully_paid:
            text = f"Full payment of {format_amount(amount, currency)} received. Debt fully paid."
        else:
            text = (
                f"Partial payment of {format_amount(amount, currency)} received. "
                f"Remaining balance: {format_amount(result.remaining, currency)}."
            )
        self._log(client.id, text, MessageType.DEBT_PAYMENT)
        return client

    def clear_client_debt(self, client_id: uuid.UUID) -> Client:
        """Writes the whole balance off. Open debt records are closed too."""
        client = self.client_service.get_client_by_id(client_id)
        previous = from_cents(to_cents(client.debt))
        client.debt = float(ledger.clear(client.debt))

        open_records = self.list_debt_records(client_id=client_id, outstanding_only=True)
        for record in open_records:
            record.collected_amount = record.amount
            record.status = ledger.derive_debt_status(record.amount, record.collected_amount).value
        self._save(client, *open_records)

        self._log(
            client.id,
            f"Outstanding balance of {format_amount(previous, self._currency())} written off. No debt remaining.",
            MessageType.DEBT_PAYMENT,
        )
        return client

    def _collect_oldest_first(self, client_id: uuid.UUID, cents: int) -> List[DebtRecord]:
        """Spreads a payment over open records; returns the ones it touched."""
        touched = []
        for record in self.list_debt_records(client_id=client_id, outstanding_only=True):
            if cents <= 0:
                break
            outstanding = to_cents(record.amount) - to_cents(record.collected_amount)
            portion = min(outstanding, cents)
            record.collected_amount = float(from_cents(to_cents(record.collected_amount) + portion))
            record.status = ledger.derive_debt_status(record.amount, record.collected_amount).value
            touched.append(record)
            cents -= portion
        return touched

    # --- Debt records ---
    def list_debt_records(
        self, client_id: Optional[uuid.UUID] = None, outstanding_only: bool = False
    ) -> List[DebtRecord]:
        statement = select(DebtRecord).order_by(DebtRecord.due_date, DebtRecord.id)
        if client_id is not None:
            statement = statement.where(DebtRecord.client_id == client_id)
        if outstanding_only:
            statement = statement.where(DebtRecord.collected_amount < DebtRecord.amount)
        return list(self.session.exec(statement).all())

    def get_debt_record(self, debt_id: int) -> DebtRecord:
        record = self.session.get(DebtRecord, debt_id)
        if not record:
            raise NotFound("DebtRecord", debt_id)
        return record

    def create_debt_record(
        self,
        client_id: uuid.UUID,
        amount,
        due_date: Optional[date] = None,
        reason: Optional[str] = None,
    ) -> DebtRecord:
        client = self.client_service.get_client_by_id(client_id)
        if to_cents(amount) <= 0:
            raise InvalidAmountError(f"Charge must be positive, got {amount}.")
        new_debt = ledger.accrue(client.debt, amount)

        record = DebtRecord(
            client_id=client.id,
            amount=float(from_cents(to_cents(amount))),
            collected_amount=0.0,
            due_date=due_date or client.due_date,
            reason=reason,
        )
        record.status = ledger.derive_debt_status(record.amount, record.collected_amount).value
        client.debt = float(new_debt)
        self._save(client, record)

        currency = self._currency()
        text = f"Debt of {format_amount(amount, currency)} recorded"
        if reason:
            text += f" ({reason})"
        text += f". Outstanding balance: {format_amount(new_debt, currency)}."
        self._log(client.id, text, MessageType.DEBT_CHARGE)
        return record

    def record_debt_payment(self, debt_id: int, amount) -> DebtRecord:
        """
        Applies a (partial) payment to one debt record and the client balance.
        Both are validated before anything is written.

        Raises:
            NotFound, InvalidAmountError
        """
        record = self.get_debt_record(debt_id)
        client = self.client_service.get_client_by_id(record.client_id)

        outstanding = from_cents(to_cents(record.amount) - to_cents(record.collected_amount))
        record_result = ledger.apply_payment(outstanding, amount)
        client_result = ledger.apply_payment(client.debt, amount)

        record.collected_amount = float(from_cents(to_cents(record.collected_amount) + to_cents(amount)))
        record.status = ledger.derive_debt_status(record.amount, record.collected_amount).value
        client.debt = float(client_result.remaining)
        self._save(record, client)

        currency = self._currency()
        if record_result.fully_paid:
            text = f"Payment of {format_amount(amount, currency)} received. Debt record #{record.id} fully paid."
        else:
            text = (
                f"Partial payment of {format_amount(amount, currency)} received for debt record #{record.id}. "
                f"Remaining: {format_amount(record_result.remaining, currency)}."
            )
        self._log(client.id, text, MessageType.DEBT_PAYMENT)
        return record

    def mark_debt_paid(self, debt_id: int) -> DebtRecord:
        """
        Closes a debt record. The client balance drops by what was still
        outstanding on it, or to zero if the balance was already smaller.
        Records already paid are returned untouched.
        """
        record = self.get_debt_record(debt_id)
        client = self.client_service.get_client_by_id(record.client_id)

        outstanding = from_cents(to_cents(record.amount) - to_cents(record.collected_amount))
        if outstanding <= 0:
            return record
        if to_cents(client.debt) >= to_cents(outstanding):
            client.debt = float(ledger.apply_payment(client.debt, outstanding).remaining)
        else:
            client.debt = float(ledger.clear(client.debt))

        record.collected_amount = record.amount
        record.status = ledger.derive_debt_status(record.amount, record.collected_amount).value
        self._save(record, client)

        self._log(
            client.id,
            f"Full payment of {format_amount(outstanding, self._currency())} received. "
            f"Debt record #{record.id} fully paid.",
            MessageType.DEBT_PAYMENT,
        )
        return record

    def totals(self) -> dict:
        """Owed / collected / outstanding over all debt records."""
        records = self.list_debt_records()
        owed = sum(to_cents(r.amount) for r in records)
        collected = sum(to_cents(r.collected_amount) for r in records)
        return {
            "total": from_cents(owed),
            "collected": from_cents(collected),
            "outstanding": from_cents(owed - collected),
        }
