from __future__ import annotations

import re
import secrets
from dataclasses import dataclass
from typing import Literal
from uuid import UUID, uuid4

SeatMode = Literal["UNLIMITED", "LIMITED"]
AuditType = Literal["INITIAL", "TOPUP", "MODE_CHANGE"]

SEAT_MODES: tuple[str, ...] = ("UNLIMITED", "LIMITED")
AUDIT_LOG_LIMIT = 50
DEFAULT_SEAT_ALLOWANCE = 5
DEFAULT_EXPIRY_DAYS = 30
DEFAULT_COMPANY_NAME = "New Client"

_CODE_ALPHABET = "23456789ABCDEFGHJKLMNPQRSTUVWXYZ"
# Codes become part of idempotency keys and Redis SCAN patterns.
_CODE_PATTERN = re.compile(r"[A-Z0-9-]+")


def normalize_code(code: str) -> str:
    """Access codes are compared case-insensitively and stored upper-case."""
    return code.strip().upper()


def is_valid_code(code: str) -> bool:
    return _CODE_PATTERN.fullmatch(normalize_code(code)) is not None


def generate_code(length: int = 8) -> str:
    return "".join(secrets.choice(_CODE_ALPHABET) for _ in range(length))


@dataclass(frozen=True, slots=True)
class SeatAuditEntry:
    """One line of a company's seat history. Never edited after creation."""

    id: str
    type: AuditType
    timestamp: int
    amount: int | None = None
    total_limit: int | None = None
    mode: SeatMode | None = None

    @staticmethod
    def new(
        *,
        type: AuditType,
        timestamp: int,
        amount: int | None = None,
        total_limit: int | None = None,
        mode: SeatMode | None = None,
    ) -> SeatAuditEntry:
        return SeatAuditEntry(
            id=secrets.token_hex(4),
            type=type,
            timestamp=timestamp,
            amount=amount,
            total_limit=total_limit,
            mode=mode,
        )


@dataclass(frozen=True, slots=True)
class AccessCode:
    """A company's training grant, redeemed by learners with ``code``."""

    id: UUID
    code: str
    company_name: str
    course_id: str
    seat_mode: SeatMode
    seat_allowance: int
    seats_used: int
    expires_at: int
    created_at: int
    audit_log: tuple[SeatAuditEntry, ...] = ()

    @staticmethod
    def new(
        *,
        code: str,
        company_name: str,
        course_id: str,
        seat_mode: SeatMode,
        seat_allowance: int,
        expires_at: int,
        created_at: int,
    ) -> AccessCode:
        initial = SeatAuditEntry.new(
            type="INITIAL",
            timestamp=created_at,
            mode=seat_mode,
            amount=seat_allowance if seat_mode == "LIMITED" else None,
        )
        return AccessCode(
            id=uuid4(),
            code=normalize_code(code),
            company_name=company_name,
            course_id=course_id,
            seat_mode=seat_mode,
            seat_allowance=seat_allowance,
            seats_used=0,
            expires_at=expires_at,
            created_at=created_at,
            audit_log=(initial,),
        )

    @property
    def is_limited(self) -> bool:
        return self.seat_mode == "LIMITED"

    @property
    def seats_remaining(self) -> int | None:
        """Seats left under LIMITED mode; None when unlimited."""
        if not self.is_limited:
            return None
        return max(self.seat_allowance - self.seats_used, 0)

    def is_expired(self, now: int) -> bool:
        return self.expires_at < now


@dataclass(frozen=True, slots=True)
class SettingsChange:
    """Fields an admin may change on an existing access code.

    ``None`` means "leave as is".  The code itself and the seat counter
    are not editable here.
    """

    company_name: str | None = None
    course_id: str | None = None
    seat_mode: SeatMode | None = None
    seat_allowance: int | None = None
    expires_at: int | None = None
