# backend/agenda/services/completion_code.py
"""
One-time completion codes.

When an appointment is booked the client receives a six-digit code. The
provider must enter it to mark the appointment completed. Only a salted
SHA-256 hash is stored, and each appointment allows a bounded number of
wrong attempts.
"""

import hashlib
import hmac
import logging
import re
import secrets
from typing import Optional, Protocol, Tuple

from ..core.config import settings
from ..models.appointment import Appointment

logger = logging.getLogger(__name__)

CODE_LENGTH = 6
_CODE_RE = re.compile(r"^\d{6}$")


def generate_completion_code() -> str:
    return str(100000 + secrets.randbelow(900000))


def hash_completion_code(code: str, salt: Optional[str] = None) -> str:
    salt_value = salt if salt is not None else settings.completion_code_salt.get_secret_value()
    return hashlib.sha256(f"{code}{salt_value}".encode("utf-8")).hexdigest()


def is_valid_code_format(code: str) -> bool:
    return bool(code) and bool(_CODE_RE.match(code))


def issue_completion_code() -> Tuple[str, str]:
    """Return ``(plaintext, hash)`` for a fresh code."""
    code = generate_completion_code()
    return code, hash_completion_code(code)


class CompletionValidator(Protocol):
    def validate(self, appointment: Appointment, code: Optional[str]) -> bool: ...

    def attempts_left(self, appointment: Appointment) -> int: ...


class CompletionCodeValidator:
    """
    Default completion gate.

    ``validate`` increments ``appointment.completion_attempts`` on every
    rejected attempt; the caller is responsible for persisting it.
    """

    def __init__(self, max_attempts: Optional[int] = None):
        self.max_attempts = max_attempts or settings.completion_code_max_attempts

    def attempts_left(self, appointment: Appointment) -> int:
        return max(0, self.max_attempts - int(appointment.completion_attempts or 0))

    def validate(self, appointment: Appointment, code: Optional[str]) -> bool:
        if self.attempts_left(appointment) <= 0:
            logger.warning(f"Completion attempts exhausted for appointment {appointment.id}")
            return False

        candidate = (code or "").strip()
        accepted = (
            appointment.completion_code_hash is not None
            and is_valid_code_format(candidate)
            and hmac.compare_digest(
                hash_completion_code(candidate), appointment.completion_code_hash
            )
        )
        if not accepted:
            appointment.completion_attempts = int(appointment.completion_attempts or 0) + 1
            logger.info(
                f"Completion code rejected for appointment {appointment.id} "
                f"({self.attempts_left(appointment)} attempts left)"
            )
        return accepted
