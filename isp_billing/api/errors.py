# isp_billing/api/errors.py
"""
Maps domain errors to HTTP responses. Every failure carries the error code
and the affected record id so the dashboard can say which record failed and why.
"""
import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

from ..core.exceptions import (
    BillingError,
    ConstraintViolation,
    DataIntegrityError,
    InvalidAmountError,
    InvalidPhoneNumberError,
    InvalidTransitionError,
    NotFound,
)

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = {
    NotFound: status.HTTP_404_NOT_FOUND,
    ConstraintViolation: status.HTTP_409_CONFLICT,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    InvalidAmountError: status.HTTP_400_BAD_REQUEST,
    InvalidPhoneNumberError: status.HTTP_400_BAD_REQUEST,
    DataIntegrityError: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def status_for(exc: BillingError) -> int:
    for error_type, code in STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return code
    return status.HTTP_400_BAD_REQUEST


async def billing_error_handler(request: Request, exc: BillingError) -> JSONResponse:
    code = status_for(exc)
    logger.info(f"{request.method} {request.url.path} -> {code} {exc.code}: {exc.message}")
    return JSONResponse(status_code=code, content=exc.to_dict())
