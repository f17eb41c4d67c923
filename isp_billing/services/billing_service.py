# isp_billing/services/billing_service.py
"""
Billing service: runs the cycle evaluator against stored clients.

Manual admin actions (mark paid, revert, suspend) and the periodic rollover
scan both go through `billing.cycle.evaluate`, so they share one set of rules.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from ..billing.cycle import BillingDecision, BillingSnapshot, ManualAction, evaluate
from ..billing.money import format_amount, to_cents
from ..core.constants import MessageChannel, MessageType
from ..core.exceptions import BillingError
from ..models import Client
from .client_service import ClientService
from .message_service import MessageService
from .settings_service import SettingsService

logger = logging.getLogger(__name__)


@dataclass
class ScanReport:
    processed: int = 0
    updated: List[str] = field(default_factory=list)
    failures: List[Dict[str, Any]] = field(default_factory=list)
    by_status: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "updated": len(self.updated),
            "updated_ids": self.updated,
            "failures": self.failures,
            "by_status": self.by_status,
        }


class BillingService:
    """
    Service for billing operations using SQLModel ORM.
    """

    def __init__(self, session: Session):
        self.session = session
        self.client_service = ClientService(session)
        self.message_service = MessageService(session)
        self.settings_service = SettingsService(session)

    def _currency(self) -> str:
        return self.settings_service.get_setting("currency_symbol") or "KES"

    def _describe(self, snapshot: BillingSnapshot, decision: BillingDecision, action: Optional[ManualAction]) -> str:
        currency = self._currency()
        text = f"Status changed from {snapshot.status.value} to {decision.status.value}"
        if decision.due_date != snapshot.due_date:
            text += f", next due date {decision.due_date.isoformat()}"
        text += "."
        accrued = to_cents(decision.debt) - snapshot.debt_cents
        if accrued > 0:
            text += (
                f" Payment recorded after the {snapshot.due_date.isoformat()} due date:"
                f" {format_amount(accrued / 100, currency)} added to debt"
                f" (total {format_amount(decision.debt, currency)})."
            )
        if action is None:
            text += " New billing cycle started automatically."
        return text

    def _persist(
        self,
        client: Client,
        snapshot: BillingSnapshot,
        decision: BillingDecision,
        action: Optional[ManualAction],
    ) -> Client:
        entry = self.message_service.build_message(
            client.id,
            self._describe(snapshot, decision, action),
            channel=MessageChannel.SYSTEM,
            message_type=MessageType.BILLING,
        )
        return self.client_service.apply_decision(client.id, decision, log_entry=entry)

    # --- Manual actions ---
    def apply_manual_action(
        self,
        client_id: uuid.UUID,
        action: ManualAction | str,
        now: Optional[datetime] = None,
    ) -> Client:
        """
        Applies an admin action to a fresh snapshot of the client.

        Raises:
            NotFound, DataIntegrityError, InvalidTransitionError
        """
        now = now or datetime.now()
        action = ManualAction(action)
        client = self.client_service.get_client_by_id(client_id)
        snapshot = BillingSnapshot.from_record(client)

        decision = evaluate(snapshot, now, action)
        if decision is None:
            return client

        logger.info(f"Client {client_id}: {action.value} ({snapshot.status.value} -> {decision.status.value})")
        return self._persist(client, snapshot, decision, action)

    def mark_paid(self, client_id: uuid.UUID, now: Optional[datetime] = None) -> Client:
        return self.apply_manual_action(client_id, ManualAction.MARK_PAID, now)

    def revert_payment(self, client_id: uuid.UUID, now: Optional[datetime] = None) -> Client:
        return self.apply_manual_action(client_id, ManualAction.REVERT_PAYMENT, now)

    def toggle_payment(self, client_id: uuid.UUID, now: Optional[datetime] = None) -> Client:
        return self.apply_manual_action(client_id, ManualAction.TOGGLE_PAYMENT, now)

    def toggle_suspension(self, client_id: uuid.UUID, now: Optional[datetime] = None) -> Client:
        return self.apply_manual_action(client_id, ManualAction.TOGGLE_SUSPENSION, now)

    # --- Periodic scan ---
    def process_rollovers(self, now: Optional[datetime] = None) -> ScanReport:
        """
        Reviews ALL clients and starts a new cycle for paid clients close to
        their due date. One bad record never blocks the rest of the batch.
        """
        now = now or datetime.now()
        logger.info("Starting billing cycle scan...")
        report = ScanReport()

        for client in self.client_service.list_clients():
            report.processed += 1
            client_id = client.id
            try:
                snapshot = BillingSnapshot.from_record(client)
                decision = evaluate(snapshot, now)
                status = snapshot.status.value
                if decision is not None:
                    client = self._persist(client, snapshot, decision, None)
                    report.updated.append(str(client_id))
                    status = decision.status.value
            except BillingError as e:
                logger.warning(f"Client {client_id} skipped: {e.message}")
                report.failures.append({"client_id": str(client_id), **e.to_dict()})
                continue
            except SQLAlchemyError as e:
                self.session.rollback()
                logger.error(f"Client {client_id} not saved: {e}")
                report.failures.append({"client_id": str(client_id), "error": "database_error", "detail": str(e)})
                continue

            report.by_status[status] = report.by_status.get(status, 0) + 1

        logger.info(
            f"Billing scan done: {report.processed} processed, "
            f"{len(report.updated)} updated, {len(report.failures)} failed"
        )
        return report
