"""Winner selection: eligibility pool, draw and reset."""

from __future__ import annotations

import logging
import random
import secrets
from dataclasses import dataclass, field
from typing import List, Optional

from .exceptions import NoEligibleParticipantsError, PartialDrawFailureError
from .models import Participant
from .store import ParticipantStore

logger = logging.getLogger(__name__)


@dataclass
class Pool:
    participants: List[Participant] = field(default_factory=list)
    used_fallback: bool = False


@dataclass
class DrawResult:
    winners: List[Participant]
    used_fallback: bool
    pool_size: int


def shuffle_pool(pool: List[Participant], rng: Optional[random.Random] = None) -> List[Participant]:
    """Return a uniformly shuffled copy of ``pool`` (Fisher-Yates via ``Random.shuffle``)."""
    shuffled = list(pool)
    (rng or secrets.SystemRandom()).shuffle(shuffled)
    return shuffled


class EligibilitySelector:
    """Pick the draw pool: channel members first, everyone unwon otherwise.

    The fallback is all-or-nothing. If fewer channel members are left than
    the draw asks for, the whole unwon pool is used instead.
    """

    def __init__(self, store: ParticipantStore):
        self.store = store

    def select_pool(self, desired_count: int, lock: bool = False) -> Pool:
        primary = self.store.unwon(channel_joined_only=True, lock=lock)
        if len(primary) >= desired_count:
            return Pool(participants=primary, used_fallback=False)

        fallback = self.store.unwon(lock=lock)
        if not fallback:
            raise NoEligibleParticipantsError("No eligible participants")

        logger.info(
            "Only %d channel members eligible for %d winners, using all %d unwon participants",
            len(primary),
            desired_count,
            len(fallback),
        )
        return Pool(participants=fallback, used_fallback=True)


class DrawEngine:
    def __init__(self, store: ParticipantStore, rng: Optional[random.Random] = None):
        self.store = store
        self.selector = EligibilitySelector(store)
        self.rng = rng

    def draw(self, desired_count: int = 5) -> DrawResult:
        """Select and mark up to ``desired_count`` new winners.

        Pool selection and marking share one transaction: either every
        selected winner is marked or nothing changes. Winners are returned in
        selection order.

        Raises:
            ValueError: ``desired_count`` below 1
            NoEligibleParticipantsError: nobody left to draw
            PartialDrawFailureError: some winners were taken concurrently
            StoreFailureError: database fault
        """
        if desired_count < 1:
            raise ValueError("Number of winners must be at least 1")

        with self.store.atomic():
            pool = self.selector.select_pool(desired_count, lock=True)
            winners = shuffle_pool(pool.participants, self.rng)[:desired_count]
            ids = [w.id for w in winners]

            marked = self.store.mark_winners(ids)
            if marked != len(ids):
                raise PartialDrawFailureError(
                    f"Marked {marked} of {len(ids)} selected winners",
                    selected=ids,
                    marked=marked,
                )

        logger.info(
            "Drew %d winners from a pool of %d (fallback=%s)",
            len(winners),
            len(pool.participants),
            pool.used_fallback,
        )
        return DrawResult(winners=winners, used_fallback=pool.used_fallback, pool_size=len(pool.participants))

    def reset(self) -> int:
        """Clear every winner mark."""
        cleared = self.store.clear_winners()
        logger.info("Raffle reset (%d participants)", cleared)
        return cleared
