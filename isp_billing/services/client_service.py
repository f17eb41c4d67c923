# isp_billing/services/client_service.py
"""
Client record store: the single source of truth for client state.
Billing code reads fresh snapshots from here and writes decisions back as a
single update-by-id, never caching clients between evaluations.
"""
import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from ..billing.cycle import BillingDecision, parse_date
from ..billing.money import to_cents
from ..core.changes import ChangeCallback, change_feed
from ..core.constants import ClientStatus, Table
from ..core.exceptions import BillingError, ConstraintViolation, DataIntegrityError
from ..models import Client, Message
from ..utils.phone import normalize_phone
from .base_service import BaseCRUDService

logger = logging.getLogger(__name__)

AMOUNT_FIELDS = ("amount_paid", "debt")
DATE_FIELDS = ("due_date", "previous_due_date")
# Only billing actions and debt operations move these
BILLING_FIELDS = frozenset({"status", "debt", "previous_due_date"})
BATCH_FIELDS = frozenset({"due_date", "amount_paid"})


class ClientService(BaseCRUDService[Client]):
    immutable_fields = frozenset({"id", "created_at", "updated_at"})

    def __init__(self, session: Session):
        super().__init__(session, Client)

    # --- Reads ---
    def list_clients(self, filters: Optional[Dict[str, Any]] = None) -> List[Client]:
        filters = dict(filters or {})
        if filters.get("status") is not None:
            try:
                filters["status"] = ClientStatus.parse(filters["status"]).value
            except ValueError:
                raise ConstraintViolation(f"Unknown status {filters['status']!r}.")
        return self.list(filters, order_by=Client.name)

    def get_client_by_id(self, client_id: uuid.UUID) -> Client:
        return self.get_by_id(client_id)

    # --- Writes ---
    def create_client(self, client_data: Dict[str, Any]) -> Client:
        new_client = self.create(self._clean(client_data, creating=True))
        logger.info(f"Client created: {new_client.name} ({new_client.id})")
        return new_client

    def bulk_create_clients(self, rows: Iterable[Dict[str, Any]]) -> List[Client]:
        """
        Inserts every row or none of them. Errors name the offending row.
        """
        cleaned = []
        for index, row in enumerate(rows, start=1):
            try:
                cleaned.append(self._clean(row, creating=True))
            except BillingError as e:
                raise ConstraintViolation(f"Row {index}: {e.message}")

        clients = [Client(**data) for data in cleaned]
        try:
            self.session.add_all(clients)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        for client in clients:
            self.session.refresh(client)
        logger.info(f"Bulk import: {len(clients)} clients created")
        return clients

    def update_client(self, client_id: uuid.UUID, client_update: Dict[str, Any]) -> Client:
        """
        Profile edit. Status and debt are refused here; a new due date drops
        the one-step revert target.

        Raises:
            NotFound, ConstraintViolation
        """
        locked = BILLING_FIELDS.intersection(client_update)
        if locked:
            raise ConstraintViolation(
                f"Field '{sorted(locked)[0]}' is managed by billing and debt actions.", client_id
            )
        clean = self._clean(client_update, creating=False)
        if "due_date" in clean:
            clean["previous_due_date"] = None
        return self.update(client_id, clean)

    def bulk_update_clients(self, client_ids: Iterable[uuid.UUID], changes: Dict[str, Any]) -> List[Client]:
        """
        Sets the same due date and/or monthly amount on every listed client,
        all or none of them.

        Raises:
            NotFound, ConstraintViolation
        """
        if not changes:
            raise ConstraintViolation("No fields to update provided.")
        unknown = set(changes) - BATCH_FIELDS
        if unknown:
            raise ConstraintViolation(f"Field '{sorted(unknown)[0]}' can't be batch updated.")
        clean = self._clean(changes, creating=False)
        if "due_date" in clean:
            clean["previous_due_date"] = None

        clients = self._get_many(client_ids)
        now = datetime.utcnow()
        for client in clients:
            for key, value in clean.items():
                setattr(client, key, value)
            client.updated_at = now
        try:
            self.session.add_all(clients)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        for client in clients:
            self.session.refresh(client)
        logger.info(f"Batch update of {sorted(clean)} on {len(clients)} clients")
        return clients

    def bulk_delete_clients(self, client_ids: Iterable[uuid.UUID]) -> List[uuid.UUID]:
        """
        Deletes every listed client or none of them.

        Raises:
            NotFound, ConstraintViolation
        """
        clients = self._get_many(client_ids)
        deleted = [client.id for client in clients]
        try:
            for client in clients:
                self.session.delete(client)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        logger.info(f"Batch delete: {len(deleted)} clients removed")
        return deleted

    def apply_decision(
        self,
        client_id: uuid.UUID,
        decision: BillingDecision,
        log_entry: Optional[Message] = None,
    ) -> Client:
        """Persists a billing decision, with its log entry if given, in one commit."""
        client = self.get_by_id(client_id)
        for key, value in decision.as_update().items():
            setattr(client, key, value)
        client.updated_at = datetime.utcnow()
        try:
            self.session.add(client)
            if log_entry is not None:
                self.session.add(log_entry)
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            raise ConstraintViolation(f"Error saving Client: {e.orig}", client_id)
        except Exception:
            self.session.rollback()
            raise
        self.session.refresh(client)
        return client

    def delete_client(self, client_id: uuid.UUID) -> None:
        self.delete(client_id)
        logger.info(f"Client {client_id} deleted")

    # --- Realtime ---
    @staticmethod
    def subscribe_to_changes(table: str, callback: ChangeCallback) -> Callable[[], None]:
        """
        Invokes `callback(table)` after every commit touching `table`.
        The callback gets no payload: re-list to refresh.
        """
        return change_feed.subscribe(Table(table).value if table != "*" else table, callback)

    # --- Helpers ---
    def _get_many(self, client_ids: Iterable[uuid.UUID]) -> List[Client]:
        ids = list(dict.fromkeys(client_ids))
        if not ids:
            raise ConstraintViolation("No clients selected.")
        return [self.get_by_id(client_id) for client_id in ids]

    def _clean(self, data: Dict[str, Any], creating: bool) -> Dict[str, Any]:
        clean = {k: v for k, v in data.items() if k not in ("id", "created_at", "updated_at")}

        if creating:
            for required in ("name", "phone_number", "due_date"):
                if not clean.get(required):
                    raise ConstraintViolation(f"Field '{required}' is required.")
            clean.setdefault("status", ClientStatus.PENDING.value)
            clean.setdefault("amount_paid", 0.0)
            clean.setdefault("debt", 0.0)

        if "phone_number" in clean:
            clean["phone_number"] = normalize_phone(clean["phone_number"])

        if "status" in clean:
            try:
                clean["status"] = ClientStatus.parse(clean["status"]).value
            except ValueError:
                raise ConstraintViolation(f"Unknown status {clean['status']!r}.")

        for field in AMOUNT_FIELDS:
            if field in clean:
                try:
                    cents = to_cents(clean[field])
                except ValueError:
                    raise ConstraintViolation(f"Field '{field}' must be a number.")
                if cents < 0:
                    raise ConstraintViolation(f"Field '{field}' can't be negative.")
                clean[field] = cents / 100

        for field in DATE_FIELDS:
            if clean.get(field) is not None:
                try:
                    clean[field] = parse_date(clean[field], field)
                except DataIntegrityError as e:
                    raise ConstraintViolation(e.message)

        return clean
