"""Data models used for giveaway persistence and runtime state."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Union


class GiveawayType(str, enum.Enum):
    CLASSIC = "classic"
    GUESS = "guess"


class GiveawayStatus(str, enum.Enum):
    ACTIVE = "active"
    ENDED = "ended"


def _optional_int(value) -> Optional[int]:
    if value in (None, ""):
        return None
    return int(value)


@dataclass(slots=True)
class ClassicData:
    """Type payload of a button-join giveaway."""
    winner_count: int = 1
    required_role_id: Optional[int] = None
    winners: List[int] = field(default_factory=list)

    def to_payload(self) -> dict:
        return {
            "winner_count": self.winner_count,
            "required_role_id": self.required_role_id,
            "winners": list(self.winners),
        }

    @classmethod
    def from_payload(cls, payload: dict) -> "ClassicData":
        return cls(
            winner_count=int(payload.get("winner_count") or 1),
            required_role_id=_optional_int(payload.get("required_role_id")),
            winners=[int(value) for value in payload.get("winners", [])],
        )


@dataclass(slots=True)
class GuessData:
    """Type payload of a guess-the-number game."""
    secret_number: int
    required_role_id: Optional[int] = None
    hints_enabled: bool = False
    cooldown_ms: int = 60_000
    winner_id: Optional[int] = None

    def to_payload(self) -> dict:
        return {
            "secret_number": self.secret_number,
            "required_role_id": self.required_role_id,
            "hints_enabled": self.hints_enabled,
            "cooldown_ms": self.cooldown_ms,
            "winner_id": self.winner_id,
        }

    @classmethod
    def from_payload(cls, payload: dict) -> "GuessData":
        return cls(
            secret_number=int(payload["secret_number"]),
            required_role_id=_optional_int(payload.get("required_role_id")),
            hints_enabled=bool(payload.get("hints_enabled", False)),
            cooldown_ms=int(payload.get("cooldown_ms") or 60_000),
            winner_id=_optional_int(payload.get("winner_id")),
        )


TypeData = Union[ClassicData, GuessData]


@dataclass(slots=True)
class Giveaway:
    """A giveaway row; the display message id is its identity."""
    message_id: int
    channel_id: int
    guild_id: int
    organizer_id: int
    prize: str
    end_timestamp: int
    type: GiveawayType
    data: TypeData
    status: GiveawayStatus = GiveawayStatus.ACTIVE
    thread_id: Optional[int] = None
    image_url: Optional[str] = None
    created_at: int = 0

    @property
    def is_active(self) -> bool:
        return self.status is GiveawayStatus.ACTIVE

    @property
    def required_role_id(self) -> Optional[int]:
        return self.data.required_role_id

    @staticmethod
    def data_from_payload(giveaway_type: GiveawayType, payload: dict) -> TypeData:
        if giveaway_type is GiveawayType.GUESS:
            return GuessData.from_payload(payload)
        return ClassicData.from_payload(payload)


@dataclass(slots=True)
class Participant:
    giveaway_id: int
    user_id: int
    joined_at: int


@dataclass(slots=True)
class ActiveGame:
    """In-memory projection of an active guess game, keyed by thread id."""
    thread_id: int
    message_id: int
    channel_id: int
    prize: str
    secret_number: int
    end_timestamp: int
    required_role_id: Optional[int] = None
    hints_enabled: bool = False
    cooldown_ms: int = 60_000

    @classmethod
    def from_giveaway(cls, giveaway: Giveaway) -> "ActiveGame":
        if giveaway.type is not GiveawayType.GUESS or giveaway.thread_id is None:
            raise ValueError(f"Giveaway {giveaway.message_id} is not a guess game.")
        data = giveaway.data
        return cls(
            thread_id=giveaway.thread_id,
            message_id=giveaway.message_id,
            channel_id=giveaway.channel_id,
            prize=giveaway.prize,
            secret_number=data.secret_number,
            end_timestamp=giveaway.end_timestamp,
            required_role_id=data.required_role_id,
            hints_enabled=data.hints_enabled,
            cooldown_ms=data.cooldown_ms,
        )


@dataclass(slots=True)
class PendingCreation:
    """Guess game parameters held between the command and the secret-number prompt."""
    user_id: int
    prize: str
    duration_ms: int
    cooldown_ms: int
    created_at: int
    required_role_id: Optional[int] = None
    image_url: Optional[str] = None
    hints_enabled: bool = False


@dataclass(slots=True)
class RuntimeState:
    """Volatile state owned by one engine instance."""
    games: Dict[int, ActiveGame] = field(default_factory=dict)
    pending: Dict[int, PendingCreation] = field(default_factory=dict)

    def get_game(self, thread_id: int) -> Optional[ActiveGame]:
        return self.games.get(thread_id)

    def upsert_game(self, game: ActiveGame) -> None:
        self.games[game.thread_id] = game

    def remove_game(self, thread_id: Optional[int]) -> Optional[ActiveGame]:
        if thread_id is None:
            return None
        return self.games.pop(thread_id, None)

    def replace_games(self, games: Iterable[ActiveGame]) -> None:
        self.games = {game.thread_id: game for game in games}

    def put_pending(self, pending: PendingCreation) -> None:
        self.pending[pending.user_id] = pending

    def take_pending(self, user_id: int) -> Optional[PendingCreation]:
        """Remove and return the pending creation for a user."""
        return self.pending.pop(user_id, None)

    def prune_pending(self, older_than: int) -> int:
        """Drop pending creations created before the given timestamp."""
        stale = [
            user_id
            for user_id, pending in self.pending.items()
            if pending.created_at < older_than
        ]
        for user_id in stale:
            del self.pending[user_id]
        return len(stale)
