"""Errors raised by the giveaway lifecycle engine.

Every error carries a message that is safe to show to the invoking user.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .models import Giveaway


class GiveawayError(RuntimeError):
    """Base class for expected, user-facing giveaway failures."""

    default_message = "The giveaway request could not be completed."

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def user_message(self) -> str:
        return str(self)


class InvalidDuration(GiveawayError):
    def __init__(self, raw: str) -> None:
        super().__init__(
            f'Invalid duration: "{raw}". Use values like 30m, 1h, 2d or 1h30m.'
        )
        self.raw = raw


class DurationTooShort(GiveawayError):
    def __init__(self, minimum_minutes: int) -> None:
        super().__init__(f"Duration must be at least {minimum_minutes} minute(s).")
        self.minimum_minutes = minimum_minutes


class InvalidWinnerCount(GiveawayError):
    default_message = "Winners must be a whole number greater than zero."


class InvalidSecretNumber(GiveawayError):
    default_message = "Invalid number. The secret number must be a whole number."


class InvalidCooldown(GiveawayError):
    def __init__(self, raw: str, minimum_seconds: int) -> None:
        super().__init__(
            f'Invalid cooldown: "{raw}". Use a duration of at least {minimum_seconds} seconds.'
        )
        self.raw = raw
        self.minimum_seconds = minimum_seconds


class NotFound(GiveawayError):
    default_message = "Giveaway not found."


class AlreadyEnded(GiveawayError):
    default_message = "This giveaway has already ended."


class RoleRequired(GiveawayError):
    def __init__(self, role_id: int) -> None:
        super().__init__(f"You need the <@&{role_id}> role to join.")
        self.role_id = role_id


class AlreadyJoined(GiveawayError):
    default_message = "You are already in this giveaway."


class NothingToUpdate(GiveawayError):
    default_message = "Provide a new reward or a new duration to update."


class DisplaySyncFailure(GiveawayError):
    """The store was updated but the giveaway message could not be."""

    default_message = "Saved, but the giveaway message could not be updated."

    def __init__(
        self, giveaway: Optional["Giveaway"] = None, message: Optional[str] = None
    ) -> None:
        super().__init__(message)
        self.giveaway = giveaway
