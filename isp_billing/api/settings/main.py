from fastapi import APIRouter, Depends, Request, status
from sqlmodel import Session

from ...core.audit import log_action
from ...db.engine_sync import get_sync_session
from ...services.billing_service import BillingService
from ...services.notification_service import NotificationService
from ...services.settings_service import SettingsService
from .models import ReminderSettingsRead

router = APIRouter()


def get_settings_service(session: Session = Depends(get_sync_session)) -> SettingsService:
    return SettingsService(session)


@router.get("/settings", response_model=dict[str, str])
def api_get_settings(service: SettingsService = Depends(get_settings_service)):
    return service.get_all_settings()


@router.put("/settings", status_code=status.HTTP_204_NO_CONTENT)
def api_update_settings(
    settings: dict[str, str],
    service: SettingsService = Depends(get_settings_service),
):
    service.update_settings(settings)


@router.get("/settings/reminders", response_model=ReminderSettingsRead)
def api_get_reminder_settings(service: SettingsService = Depends(get_settings_service)):
    """Effective values, defaults applied."""
    reminder_settings = service.get_reminder_settings()
    return ReminderSettingsRead(
        notification_enabled=reminder_settings.notification_enabled,
        payment_reminder_days=reminder_settings.payment_reminder_days,
    )


# --- Manual triggers ---


@router.post("/settings/force-billing", status_code=200)
def force_billing_update(request: Request, session: Session = Depends(get_sync_session)):
    """
    Runs the billing cycle scan now instead of waiting for the scheduler.
    Per-client failures are reported in the response, not raised.
    """
    report = BillingService(session).process_rollovers()
    log_action("FORCE_BILLING", "billing", "all", request=request, details={"updated": len(report.updated)})
    return {"message": "Billing statuses updated.", "stats": report.to_dict()}


@router.post("/settings/send-reminders", status_code=200)
def force_send_reminders(session: Session = Depends(get_sync_session)):
    report = NotificationService(session).run_reminders()
    if report.skipped:
        return {"message": "Notifications are disabled.", "report": report.to_dict()}
    return {"message": "Payment reminders handed off.", "report": report.to_dict()}
