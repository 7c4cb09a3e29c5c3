"""Seat allowance bookkeeping for access codes.

Every admin change to a company's seat mode or allowance leaves one
SeatAuditEntry on the code's audit log (newest first, capped at
AUDIT_LOG_LIMIT).  A mode change takes precedence over an allowance
change made in the same call; renames and expiry changes leave no
entry.

Seat consumption goes through ``consume_seat``, which relies on the
repository's atomic conditional increment, so the counter can never
pass the allowance.
"""

from __future__ import annotations

import dataclasses
import datetime
import logging
from uuid import UUID

from app.core.metrics import SEATS_CONSUMED
from app.models.access_code import (
    AUDIT_LOG_LIMIT,
    SEAT_MODES,
    AccessCode,
    SeatAuditEntry,
    SettingsChange,
)
from app.repos.access_code_repo import AccessCodeRepo

logger = logging.getLogger(__name__)


class SeatLedgerError(ValueError):
    pass


def _now() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


def audit_entry_for(
    record: AccessCode, change: SettingsChange, *, now: int
) -> SeatAuditEntry | None:
    """The single audit entry ``change`` produces, if any."""
    if change.seat_mode is not None and change.seat_mode != record.seat_mode:
        # An allowance of 0 in the request reads as "not given".
        target = change.seat_allowance or record.seat_allowance
        return SeatAuditEntry.new(
            type="MODE_CHANGE",
            timestamp=now,
            mode=change.seat_mode,
            amount=target,
        )
    if (
        change.seat_allowance is not None
        and change.seat_allowance != record.seat_allowance
    ):
        return SeatAuditEntry.new(
            type="TOPUP",
            timestamp=now,
            amount=change.seat_allowance - record.seat_allowance,
            total_limit=change.seat_allowance,
        )
    return None


def apply_settings_change(
    record: AccessCode, change: SettingsChange, *, now: int
) -> AccessCode:
    """Return ``record`` with ``change`` merged in and the audit log updated.

    Raises SeatLedgerError if the result would break the seat invariants.
    """
    if change.seat_mode is not None and change.seat_mode not in SEAT_MODES:
        raise SeatLedgerError(f"unknown seat mode {change.seat_mode!r}")
    if change.company_name is not None and not change.company_name.strip():
        raise SeatLedgerError("company name must be non-empty")

    mode = change.seat_mode if change.seat_mode is not None else record.seat_mode
    allowance = (
        change.seat_allowance
        if change.seat_allowance is not None
        else record.seat_allowance
    )
    if allowance < 0:
        raise SeatLedgerError("seat allowance must be >= 0")
    if mode == "LIMITED" and allowance < record.seats_used:
        raise SeatLedgerError(
            f"seat allowance {allowance} is below seats already used "
            f"({record.seats_used})"
        )

    entry = audit_entry_for(record, change, now=now)
    audit_log = record.audit_log
    if entry is not None:
        audit_log = ((entry,) + audit_log)[:AUDIT_LOG_LIMIT]

    return dataclasses.replace(
        record,
        company_name=(
            change.company_name.strip()
            if change.company_name is not None
            else record.company_name
        ),
        course_id=change.course_id if change.course_id is not None else record.course_id,
        seat_mode=mode,
        seat_allowance=allowance,
        expires_at=change.expires_at if change.expires_at is not None else record.expires_at,
        audit_log=audit_log,
    )


async def update_settings(
    repo: AccessCodeRepo,
    company_id: UUID,
    change: SettingsChange,
    *,
    now: int | None = None,
) -> AccessCode | None:
    """Apply an admin settings change. Returns None if the company is gone."""
    record = await repo.get_by_id(company_id)
    if record is None:
        logger.warning("Settings update for unknown company id=%s", company_id)
        return None

    updated = apply_settings_change(record, change, now=_now() if now is None else now)
    await repo.save(updated)

    if updated.audit_log and updated.audit_log is not record.audit_log:
        entry = updated.audit_log[0]
        logger.info(
            "Seat ledger %s code=%s mode=%s allowance=%d",
            entry.type,
            updated.code,
            updated.seat_mode,
            updated.seat_allowance,
            extra={"access_code": updated.code},
        )
    return updated


async def top_up(
    repo: AccessCodeRepo,
    company_id: UUID,
    delta: int,
    *,
    now: int | None = None,
) -> AccessCode | None:
    """Add ``delta`` seats to the allowance (recorded as a TOPUP entry)."""
    if delta <= 0:
        raise SeatLedgerError("top-up must add at least one seat")
    record = await repo.get_by_id(company_id)
    if record is None:
        logger.warning("Top-up for unknown company id=%s", company_id)
        return None
    return await update_settings(
        repo,
        company_id,
        SettingsChange(seat_allowance=record.seat_allowance + delta),
        now=now,
    )


async def consume_seat(repo: AccessCodeRepo, code: str) -> AccessCode | None:
    updated = await repo.consume_seat(code)
    if updated is not None:
        SEATS_CONSUMED.inc()
        logger.info(
            "Seat consumed code=%s used=%d/%d",
            updated.code,
            updated.seats_used,
            updated.seat_allowance,
            extra={"access_code": updated.code},
        )
    return updated
