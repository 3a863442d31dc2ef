"""Ingestion gate: turns inbound SMS events into participant registrations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Optional

from .channel import ChannelMembershipChecker, check_membership
from .logger import mask_phone
from .models import Participant
from .store import ParticipantStore
from .timeutil import to_naive_utc, utcnow

logger = logging.getLogger(__name__)

# Rejection reasons reported back to the sender
REASON_MISSING_ORIGIN = "missing_origin"
REASON_INVALID_CODE = "invalid_code"
REASON_OUTSIDE_WINDOW = "outside_window"

# Persian (U+06F0..) and Arabic-Indic (U+0660..) digits, as typed on local keyboards
_DIGITS = str.maketrans(
    "۰۱۲۳۴۵۶۷۸۹٠١٢٣٤٥٦٧٨٩",
    "01234567890123456789",
)


def normalize_digits(value: Optional[str]) -> str:
    if value is None:
        return ""
    return value.translate(_DIGITS).strip()


@dataclass
class TimeWindow:
    """Arrival window in whole hours, ``start`` inclusive and ``end`` exclusive.

    Hours are read on the raffle's clock ``tz``. Naive datetimes are UTC.
    """

    start_hour: int = 19
    end_hour: int = 21
    tz: tzinfo = timezone.utc

    def local_time(self, when: datetime) -> datetime:
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        return when.astimezone(self.tz)

    def contains(self, when: datetime) -> bool:
        hour = self.local_time(when).hour
        if self.start_hour <= self.end_hour:
            return self.start_hour <= hour < self.end_hour
        # Window wraps past midnight, e.g. 22 -> 2
        return hour >= self.start_hour or hour < self.end_hour


@dataclass
class IngestResult:
    accepted: bool
    noop: bool = False
    reason: Optional[str] = None
    in_window: Optional[bool] = None
    participant: Optional[Participant] = None


class IngestionGate:
    def __init__(
        self,
        store: ParticipantStore,
        accepted_code: str = "9",
        window: Optional[TimeWindow] = None,
        enforce_window: bool = False,
        checker: Optional[ChannelMembershipChecker] = None,
    ):
        self.store = store
        self.accepted_code = accepted_code
        self.window = window or TimeWindow()
        self.enforce_window = enforce_window
        self.checker = checker

    def submit(
        self,
        origin_phone: str,
        payload_code: Optional[str] = None,
        arrival_time: Optional[datetime] = None,
    ) -> IngestResult:
        """Register ``origin_phone`` if the event is acceptable.

        Rejections, including a blank origin, come back as
        ``IngestResult(accepted=False, reason=...)``.
        A phone that is already registered is accepted as a no-op. Store
        faults raise ``StoreFailureError``.
        """
        phone = normalize_digits(origin_phone)
        if not phone:
            logger.info("Rejected event without origin phone")
            return IngestResult(accepted=False, reason=REASON_MISSING_ORIGIN)

        code = normalize_digits(payload_code)
        if code != self.accepted_code:
            logger.info("Rejected event from %s: invalid code", mask_phone(phone))
            return IngestResult(accepted=False, reason=REASON_INVALID_CODE)

        arrived = arrival_time or utcnow()
        in_window = self.window.contains(arrived)
        logger.info(
            "Event from %s arrived at %s raffle time (%s window)",
            mask_phone(phone),
            self.window.local_time(arrived).strftime("%H:%M %Z"),
            "inside" if in_window else "outside",
        )
        if self.enforce_window and not in_window:
            return IngestResult(accepted=False, reason=REASON_OUTSIDE_WINDOW, in_window=False)

        existing = self.store.get_by_phone(phone)
        if existing is not None:
            logger.info("Duplicate registration from %s ignored", mask_phone(phone))
            return IngestResult(accepted=True, noop=True, in_window=in_window, participant=existing)

        participant, created = self.store.add_if_absent(
            phone=phone,
            code=code,
            received_at=to_naive_utc(arrived),
            channel_joined=check_membership(self.checker, phone),
        )
        if created:
            logger.info("Registered participant %s (id=%s)", mask_phone(phone), participant.id)
        return IngestResult(accepted=True, noop=not created, in_window=in_window, participant=participant)
