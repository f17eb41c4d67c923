# isp_billing/core/audit.py
"""
Audit trail for destructive admin actions (client/expense deletes, forced
billing runs). Written as JSON lines to `<AUDIT_LOG_DIR>/audit.log`, apart
from the database.

Billing events (charges, payments, reminders) go to the `messages` table
instead, see services/message_service.py.
"""
import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import Request

from .config import get_settings

audit_logger = logging.getLogger("audit")
audit_logger.setLevel(logging.INFO)
audit_logger.propagate = False


def _attach_file_handler():
    log_dir = get_settings().audit_log_dir
    path = os.path.abspath(os.path.join(log_dir, "audit.log"))
    for existing in audit_logger.handlers:
        if isinstance(existing, logging.FileHandler) and existing.baseFilename == path:
            return
    os.makedirs(log_dir, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(message)s"))
    audit_logger.addHandler(handler)


def client_ip(request: Optional[Request]) -> str:
    """First hop of X-Forwarded-For when behind a proxy, else the peer address."""
    if request is None:
        return "unknown"
    chain = request.headers.get("x-forwarded-for")
    if chain:
        return chain.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def log_action(
    action: str,
    resource_type: str,
    resource_id: Any,
    request: Optional[Request] = None,
    details: Optional[dict] = None,
    status: str = "success",
) -> dict:
    """
    Appends one entry, e.g. ``log_action("DELETE", "client", client_id, request)``,
    and returns it.
    """
    _attach_file_handler()

    entry = {
        "at": datetime.now(timezone.utc).isoformat(),
        "action": action.upper(),
        "resource": f"{resource_type}:{resource_id}",
        "ip": client_ip(request),
        "status": status,
    }
    if details:
        entry["details"] = details

    audit_logger.info(json.dumps(entry, ensure_ascii=False, default=str))
    return entry
