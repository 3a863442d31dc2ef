"""SMS gateway inbox client and the sync operation built on it."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

import requests

from .exceptions import GatewayError
from .ingestion import IngestionGate

logger = logging.getLogger(__name__)


@dataclass
class InboundSms:
    origin: str
    payload: str
    arrival_time: Optional[datetime] = None


@dataclass
class SyncSummary:
    added: int = 0
    duplicates: int = 0
    rejected: int = 0


def parse_timestamp(value) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Ignoring unparseable gateway timestamp %r", value)
        return None


class SmsGatewayClient:
    """Reads pending messages from the gateway inbox.

    ``GET url`` returns ``{"messages": [{"from", "message", "timestamp"}, ...]}``
    (a bare list is accepted too).
    """

    def __init__(self, url: str, token: Optional[str] = None, timeout: int = 30):
        self.url = url
        self.token = token
        self.timeout = timeout

    def fetch_messages(self) -> List[InboundSms]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            r = requests.get(self.url, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise GatewayError(f"SMS gateway request failed: {str(e)}") from e

        if r.status_code != 200:
            raise GatewayError(f"SMS gateway error {r.status_code}: {r.text}")

        try:
            data = r.json()
        except ValueError as e:
            raise GatewayError(f"SMS gateway returned invalid JSON: {str(e)}") from e

        items = (data.get("messages") or []) if isinstance(data, dict) else data
        if not isinstance(items, list):
            raise GatewayError(f"Unexpected SMS gateway response: {data!r}")

        messages = []
        for item in items:
            if not isinstance(item, dict):
                logger.warning("Skipping malformed gateway message %r", item)
                continue
            origin = item.get("from")
            if not origin:
                continue
            messages.append(
                InboundSms(
                    origin=str(origin),
                    payload=str(item.get("message", "")),
                    arrival_time=parse_timestamp(item.get("timestamp")),
                )
            )
        return messages


def sync_from_gateway(client: SmsGatewayClient, gate: IngestionGate) -> SyncSummary:
    """Feed every pending gateway message through the ingestion gate."""
    summary = SyncSummary()
    for sms in client.fetch_messages():
        result = gate.submit(sms.origin, sms.payload, sms.arrival_time)
        if not result.accepted:
            summary.rejected += 1
        elif result.noop:
            summary.duplicates += 1
        else:
            summary.added += 1

    logger.info(
        "Gateway sync: %d added, %d duplicates, %d rejected",
        summary.added,
        summary.duplicates,
        summary.rejected,
    )
    return summary
