"""Raffle error taxonomy."""

from __future__ import annotations


class RaffleError(Exception):
    """Base exception for all raffle errors."""
    pass


class NoEligibleParticipantsError(RaffleError):
    """Raised when a draw finds nobody left to select."""
    pass


class StoreFailureError(RaffleError):
    """Wraps an underlying persistence fault."""
    pass


class PartialDrawFailureError(RaffleError):
    """Raised when only some of the selected winners could be marked.

    The draw transaction is rolled back before this is raised, so the
    store holds no partial winner set.
    """

    def __init__(self, message: str, selected: list[int], marked: int):
        super().__init__(message)
        self.selected = selected
        self.marked = marked


class ChannelCheckError(RaffleError):
    """Raised when the channel membership service cannot be reached."""
    pass


class GatewayError(RaffleError):
    """Raised when the SMS gateway cannot be read."""
    pass
