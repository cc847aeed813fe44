# backend/agenda/routes/v1/common.py
"""Helpers shared by the v1 route modules."""

import logging
from typing import NoReturn

from ...core.exceptions import DomainException, ScheduleIntegrityError

logger = logging.getLogger(__name__)

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if isinstance(exc, ScheduleIntegrityError):
        # Users only see the generic message; keep the specifics in the log
        logger.error(
            "schedule_integrity_error: %s",
            exc.message,
            extra={"details": exc.details},
        )
    raise exc.to_http_exception() from exc

