"""External channel membership checks.

The raffle only ever reads the ``channel_joined`` flag; deciding whether a
phone number belongs to the channel is delegated to a checker.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

import requests

from .exceptions import ChannelCheckError
from .logger import mask_phone
from .timeutil import utcnow

logger = logging.getLogger(__name__)


@dataclass
class ChannelStatus:
    connected: bool
    channel_id: str
    last_checked_at: Optional[datetime]


class ChannelMembershipChecker:
    """Interface: answer whether a phone number has joined the channel."""

    channel_id: str = ""

    def is_member(self, phone: str) -> bool:
        raise NotImplementedError

    def status(self) -> ChannelStatus:
        raise NotImplementedError


class StaticChannelChecker(ChannelMembershipChecker):
    """Membership from a fixed set of phones. With no set, nobody is a member."""

    def __init__(self, channel_id: str, members: Optional[Iterable[str]] = None):
        self.channel_id = channel_id
        self.members = set(members or ())
        self.last_checked_at: Optional[datetime] = None

    def is_member(self, phone: str) -> bool:
        self.last_checked_at = utcnow()
        return phone in self.members

    def status(self) -> ChannelStatus:
        return ChannelStatus(
            connected=bool(self.members),
            channel_id=self.channel_id,
            last_checked_at=self.last_checked_at,
        )


class HttpChannelChecker(ChannelMembershipChecker):
    """Asks a membership bot over HTTP.

    POST ``{channel, phone}`` to ``url``; the service answers ``{"member": bool}``.
    """

    def __init__(self, url: str, channel_id: str, token: Optional[str] = None, timeout: int = 30):
        self.url = url
        self.channel_id = channel_id
        self.token = token
        self.timeout = timeout
        self.last_checked_at: Optional[datetime] = None
        self.connected = False

    def is_member(self, phone: str) -> bool:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            r = requests.post(
                self.url,
                json={"channel": self.channel_id, "phone": phone},
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            self.connected = False
            raise ChannelCheckError(f"Membership check failed: {str(e)}") from e

        if r.status_code != 200:
            self.connected = False
            raise ChannelCheckError(f"Membership service error {r.status_code}: {r.text}")

        try:
            data = r.json()
        except ValueError as e:
            self.connected = False
            raise ChannelCheckError(f"Membership service returned invalid JSON: {str(e)}") from e
        if not isinstance(data, dict):
            self.connected = False
            raise ChannelCheckError(f"Unexpected membership response: {data!r}")

        self.connected = True
        self.last_checked_at = utcnow()
        return bool(data.get("member", False))

    def status(self) -> ChannelStatus:
        return ChannelStatus(
            connected=self.connected,
            channel_id=self.channel_id,
            last_checked_at=self.last_checked_at,
        )


def check_membership(checker: Optional[ChannelMembershipChecker], phone: str) -> bool:
    """Membership for ``phone``, treating an unavailable checker as 'not joined'."""
    if checker is None:
        return False
    try:
        return checker.is_member(phone)
    except ChannelCheckError as e:
        logger.warning("Channel check unavailable for %s: %s", mask_phone(phone), e)
        return False


def refresh_membership(store, checker: ChannelMembershipChecker) -> int:
    """Re-check everyone not yet marked as joined; returns how many joined since.

    ``ChannelCheckError`` propagates so a dead checker is not mistaken for
    an empty channel.
    """
    joined = [p.id for p in store.list_not_joined() if checker.is_member(p.phone)]
    updated = store.mark_channel_joined(joined)
    logger.info("Channel refresh: %d participants newly joined", updated)
    return updated
