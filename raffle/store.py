"""Participant store: the only component that writes participant rows."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .exceptions import StoreFailureError
from .logger import mask_phone
from .models import Participant
from .timeutil import to_naive_utc

logger = logging.getLogger(__name__)


class ParticipantStore:
    """Participants keyed by phone number, backed by one SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def atomic(self) -> Iterator[Session]:
        """Run a block as one transaction; commit on success, roll back on error.

        SQLAlchemy faults are re-raised as ``StoreFailureError``; any other
        exception propagates unchanged after the rollback.
        """
        try:
            yield self.db
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Store transaction failed")
            raise StoreFailureError(f"Database error: {e}") from e
        except Exception:
            self.db.rollback()
            raise

    # --- reads ---

    def get_by_phone(self, phone: str) -> Optional[Participant]:
        try:
            return self.db.query(Participant).filter(Participant.phone == phone).first()
        except SQLAlchemyError as e:
            raise StoreFailureError(f"Database error: {e}") from e

    def list_participants(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Participant]:
        """All participants, newest arrival first, optionally bounded (inclusive)."""
        try:
            query = self.db.query(Participant)
            # received_at is naive UTC; bounds with an offset are converted first
            if start is not None:
                query = query.filter(Participant.received_at >= to_naive_utc(start))
            if end is not None:
                query = query.filter(Participant.received_at <= to_naive_utc(end))
            return query.order_by(Participant.received_at.desc(), Participant.id.desc()).all()
        except SQLAlchemyError as e:
            raise StoreFailureError(f"Database error: {e}") from e

    def list_not_joined(self) -> List[Participant]:
        try:
            return (
                self.db.query(Participant)
                .filter(Participant.channel_joined.is_(False))
                .order_by(Participant.id)
                .all()
            )
        except SQLAlchemyError as e:
            raise StoreFailureError(f"Database error: {e}") from e

    def list_winners(self) -> List[Participant]:
        try:
            return (
                self.db.query(Participant)
                .filter(Participant.is_winner.is_(True))
                .order_by(Participant.id)
                .all()
            )
        except SQLAlchemyError as e:
            raise StoreFailureError(f"Database error: {e}") from e

    def unwon(self, channel_joined_only: bool = False, lock: bool = False) -> List[Participant]:
        """Participants not yet marked as winners.

        With ``lock`` the rows are read ``FOR UPDATE`` so a concurrent draw
        waits for this transaction (ignored by SQLite, which serializes writers).
        """
        query = self.db.query(Participant).filter(Participant.is_winner.is_(False))
        if channel_joined_only:
            query = query.filter(Participant.channel_joined.is_(True))
        if lock:
            query = query.with_for_update()
        return query.order_by(Participant.id).all()

    # --- writes ---

    def add_if_absent(
        self,
        phone: str,
        code: str,
        received_at: datetime,
        channel_joined: bool = False,
    ) -> Tuple[Participant, bool]:
        """Insert a participant unless the phone is already registered.

        Returns ``(participant, created)``. An existing row is returned as is;
        its fields are never updated.
        """
        existing = self.get_by_phone(phone)
        if existing is not None:
            return existing, False

        participant = Participant(
            phone=phone,
            code=code,
            received_at=received_at,
            is_winner=False,
            channel_joined=channel_joined,
        )
        try:
            self.db.add(participant)
            self.db.commit()
        except IntegrityError:
            # Another request registered the same phone between our read and write
            self.db.rollback()
            existing = self.get_by_phone(phone)
            if existing is None:
                raise StoreFailureError(f"Could not register {mask_phone(phone)}")
            return existing, False
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Failed to register participant")
            raise StoreFailureError(f"Database error: {e}") from e

        self.db.refresh(participant)
        return participant, True

    def mark_winners(self, ids: List[int]) -> int:
        """Flag the given participants as winners; returns the rows changed.

        Must run inside ``atomic()``. Rows that are already winners are not
        counted, so a short count means another draw got there first.
        """
        if not ids:
            return 0
        return (
            self.db.query(Participant)
            .filter(Participant.id.in_(ids), Participant.is_winner.is_(False))
            .update({Participant.is_winner: True}, synchronize_session=False)
        )

    def clear_winners(self) -> int:
        """Unflag every winner. Returns the number of rows touched."""
        with self.atomic():
            count = (
                self.db.query(Participant)
                .update({Participant.is_winner: False}, synchronize_session=False)
            )
        return count

    def mark_channel_joined(self, ids: List[int]) -> int:
        """Record external channel membership. The flag is never cleared."""
        if not ids:
            return 0
        with self.atomic():
            count = (
                self.db.query(Participant)
                .filter(Participant.id.in_(ids), Participant.channel_joined.is_(False))
                .update({Participant.channel_joined: True}, synchronize_session=False)
            )
        return count
