from __future__ import annotations

import enum
import logging
import re
import secrets
from datetime import UTC, datetime
from typing import Callable, List, Optional, Sequence

import discord

from . import embeds
from .config import Config
from .cooldowns import CooldownTracker
from .durations import humanize_ms, parse_duration
from .errors import (
    AlreadyEnded,
    AlreadyJoined,
    DisplaySyncFailure,
    DurationTooShort,
    InvalidCooldown,
    InvalidDuration,
    InvalidSecretNumber,
    InvalidWinnerCount,
    NotFound,
    NothingToUpdate,
    RoleRequired,
)
from .models import (
    ActiveGame,
    ClassicData,
    Giveaway,
    GiveawayStatus,
    GiveawayType,
    GuessData,
    Participant,
    PendingCreation,
    RuntimeState,
)
from .storage import GiveawayStore
from .views import ClassicJoinView

log = logging.getLogger(__name__)

GUESS_RE = re.compile(r"^-?\d+$")

RATE_LIMIT_EMOJI = "⏳"
MISS_EMOJI = "❌"
HIGHER_EMOJI = "⬆️"
LOWER_EMOJI = "⬇️"


class GuessOutcome(enum.Enum):
    IGNORED = "ignored"
    RATE_LIMITED = "rate_limited"
    # Secret number is above the guess.
    HIGHER = "higher"
    LOWER = "lower"
    MISS = "miss"
    WIN = "win"


def now_ms() -> int:
    return int(datetime.now(tz=UTC).timestamp() * 1000)


def member_has_role(member: object, role_id: int) -> bool:
    roles = getattr(member, "roles", None) or []
    return any(getattr(role, "id", None) == role_id for role in roles)


def draw_winners(pool: Sequence[int], count: int, rng) -> List[int]:
    """Draw up to ``count`` distinct entries uniformly without replacement."""
    remaining = list(pool)
    winners: List[int] = []
    while remaining and len(winners) < count:
        winners.append(remaining.pop(rng.randrange(len(remaining))))
    return winners


class GiveawayManager:
    """Coordinates giveaway lifecycle, persistence, and Discord interactions."""

    def __init__(
        self,
        bot: discord.Client,
        config: Config,
        store: GiveawayStore,
        *,
        clock: Optional[Callable[[], int]] = None,
        rng=None,
    ) -> None:
        self.bot = bot
        self.config = config
        self.store = store
        self.state = RuntimeState()
        self.cooldowns = CooldownTracker(
            config.timers.cooldown_retention_seconds * 1000
        )
        self._clock = clock or now_ms
        self._rng = rng or secrets.SystemRandom()
        self._join_view: Optional[ClassicJoinView] = None

    @property
    def join_view(self) -> ClassicJoinView:
        # Views need a running loop, so build lazily.
        if self._join_view is None:
            self._join_view = ClassicJoinView(self)
        return self._join_view

    async def load(self) -> None:
        """Open the store and rebuild the guess game index from active rows."""
        await self.store.open()
        games: List[ActiveGame] = []
        for giveaway in await self.store.list_active_guess_games():
            try:
                games.append(ActiveGame.from_giveaway(giveaway))
            except ValueError as exc:
                log.warning("Skipping guess giveaway %s: %s", giveaway.message_id, exc)
        self.state.replace_games(games)
        self.bot.add_view(self.join_view)
        log.info("Loaded %d active guess games.", len(games))

    # --- Validation -------------------------------------------------------

    def parse_giveaway_duration(self, raw: str) -> int:
        duration = parse_duration(raw)
        if duration is None:
            raise InvalidDuration(raw)
        if duration < self.config.giveaways.min_duration_ms:
            raise DurationTooShort(self.config.giveaways.min_duration_minutes)
        return duration

    def parse_cooldown(self, raw: Optional[str]) -> int:
        defaults = self.config.giveaways
        if raw is None or not raw.strip():
            return defaults.default_cooldown_ms
        cooldown = parse_duration(raw)
        if cooldown is None or cooldown < defaults.min_cooldown_ms:
            raise InvalidCooldown(raw, defaults.min_cooldown_seconds)
        return cooldown

    @staticmethod
    def validate_secret_number(raw: Optional[str]) -> int:
        text = (raw or "").strip()
        if not GUESS_RE.match(text):
            raise InvalidSecretNumber()
        return int(text)

    # --- Creation ---------------------------------------------------------

    async def start_classic_giveaway(
        self,
        channel: discord.TextChannel,
        *,
        guild_id: int,
        organizer_id: int,
        prize: str,
        duration: str,
        winners: int,
        required_role_id: Optional[int] = None,
        image_url: Optional[str] = None,
    ) -> Giveaway:
        duration_ms = self.parse_giveaway_duration(duration)
        if isinstance(winners, bool) or not isinstance(winners, int) or winners < 1:
            raise InvalidWinnerCount()

        now = self._clock()
        giveaway = Giveaway(
            message_id=0,
            channel_id=channel.id,
            guild_id=guild_id,
            organizer_id=organizer_id,
            prize=prize,
            end_timestamp=now + duration_ms,
            type=GiveawayType.CLASSIC,
            data=ClassicData(winner_count=winners, required_role_id=required_role_id),
            image_url=image_url,
            created_at=now,
        )
        message = await channel.send(
            embed=embeds.classic_embed(giveaway, 0), view=self.join_view
        )
        giveaway.message_id = message.id
        try:
            await self.store.insert_giveaway(giveaway)
        except Exception:
            log.exception(
                "Failed to persist classic giveaway %s; removing its message.",
                message.id,
            )
            try:
                await message.delete()
            except discord.HTTPException as exc:
                log.warning("Orphaned giveaway message %s left behind: %s", message.id, exc)
            raise

        log.info(
            "Classic giveaway %s started in channel %s (%d winner(s)).",
            giveaway.message_id,
            giveaway.channel_id,
            winners,
        )
        await self._notify_logger(
            f"Giveaway **{giveaway.prize}** (`{giveaway.message_id}`) started in "
            f"<#{giveaway.channel_id}>."
        )
        return giveaway

    def begin_guess_giveaway(
        self,
        user_id: int,
        *,
        prize: str,
        duration: str,
        required_role_id: Optional[int] = None,
        image_url: Optional[str] = None,
        hints: bool = False,
        cooldown: Optional[str] = None,
    ) -> PendingCreation:
        """Validate the command options and hold them until the secret number arrives."""
        pending = PendingCreation(
            user_id=user_id,
            prize=prize,
            duration_ms=self.parse_giveaway_duration(duration),
            cooldown_ms=self.parse_cooldown(cooldown),
            created_at=self._clock(),
            required_role_id=required_role_id,
            image_url=image_url,
            hints_enabled=bool(hints),
        )
        self.state.put_pending(pending)
        return pending

    async def complete_guess_giveaway(
        self,
        user_id: int,
        raw_secret: str,
        *,
        channel: discord.TextChannel,
        guild_id: int,
    ) -> Optional[Giveaway]:
        secret_number = self.validate_secret_number(raw_secret)
        pending = self.state.take_pending(user_id)
        if pending is None:
            log.debug("No pending guess giveaway for user %s; ignoring submission.", user_id)
            return None

        now = self._clock()
        giveaway = Giveaway(
            message_id=0,
            channel_id=channel.id,
            guild_id=guild_id,
            organizer_id=user_id,
            prize=pending.prize,
            end_timestamp=now + pending.duration_ms,
            type=GiveawayType.GUESS,
            data=GuessData(
                secret_number=secret_number,
                required_role_id=pending.required_role_id,
                hints_enabled=pending.hints_enabled,
                cooldown_ms=pending.cooldown_ms,
            ),
            image_url=pending.image_url,
            created_at=now,
        )
        message = await channel.send(embed=embeds.guess_embed(giveaway))
        thread = await message.create_thread(
            name=f"Guess: {pending.prize}"[:100], auto_archive_duration=1440
        )
        giveaway.message_id = message.id
        giveaway.thread_id = thread.id
        try:
            await self.store.insert_giveaway(giveaway)
        except Exception:
            log.exception(
                "Failed to persist guess giveaway %s; removing its thread and message.",
                message.id,
            )
            for target in (thread, message):
                try:
                    await target.delete()
                except discord.HTTPException as exc:
                    log.warning("Orphaned guess giveaway %s left behind: %s", target.id, exc)
            raise
        self.state.upsert_game(ActiveGame.from_giveaway(giveaway))

        intro = f"**Start Guessing!**\nCooldown: {humanize_ms(pending.cooldown_ms)}."
        if pending.hints_enabled:
            intro += (
                f"\nHints are on: {HIGHER_EMOJI} means the number is higher, "
                f"{LOWER_EMOJI} means it is lower."
            )
        try:
            await thread.send(intro)
        except discord.HTTPException as exc:
            log.warning("Failed to post intro in thread %s: %s", thread.id, exc)

        log.info(
            "Guess giveaway %s started with thread %s.",
            giveaway.message_id,
            giveaway.thread_id,
        )
        await self._notify_logger(
            f"Guess giveaway **{giveaway.prize}** (`{giveaway.message_id}`) started in "
            f"<#{giveaway.thread_id}>."
        )
        return giveaway

    # --- Edit ---------------------------------------------------------------

    async def edit_giveaway(
        self,
        message_id: int,
        *,
        new_prize: Optional[str] = None,
        new_duration: Optional[str] = None,
    ) -> Giveaway:
        prize = new_prize.strip() if new_prize and new_prize.strip() else None
        duration = new_duration if new_duration and new_duration.strip() else None
        if prize is None and duration is None:
            raise NothingToUpdate()
        end_timestamp = None
        if duration is not None:
            end_timestamp = self._clock() + self.parse_giveaway_duration(duration)

        giveaway = await self.store.get_giveaway(message_id)
        if giveaway is None:
            raise NotFound()
        if not giveaway.is_active:
            raise AlreadyEnded()

        updated = await self.store.update_giveaway(
            message_id, prize=prize, end_timestamp=end_timestamp
        )
        if not updated:
            raise AlreadyEnded()
        if prize is not None:
            giveaway.prize = prize
        if end_timestamp is not None:
            giveaway.end_timestamp = end_timestamp

        game = self.state.get_game(giveaway.thread_id) if giveaway.thread_id else None
        if game is not None:
            if prize is not None:
                game.prize = prize
            if end_timestamp is not None:
                game.end_timestamp = end_timestamp

        log.info("Giveaway %s updated (prize=%r, end=%s).", message_id, prize, end_timestamp)
        await self._notify_logger(f"Giveaway `{message_id}` updated.")
        if not await self._refresh_display(giveaway):
            raise DisplaySyncFailure(giveaway)
        return giveaway

    # --- Participation ----------------------------------------------------

    async def join_classic(self, message_id: int, member: discord.Member) -> int:
        """Enter a member into a classic giveaway and return the participant count."""
        giveaway = await self.store.get_giveaway(message_id)
        if giveaway is None or giveaway.type is not GiveawayType.CLASSIC:
            raise NotFound()
        if not giveaway.is_active:
            raise AlreadyEnded()
        role_id = giveaway.required_role_id
        if role_id and not member_has_role(member, role_id):
            raise RoleRequired(role_id)

        added = await self.store.add_participant(
            Participant(giveaway_id=message_id, user_id=member.id, joined_at=self._clock())
        )
        if not added:
            raise AlreadyJoined()

        count = await self.store.count_participants(message_id)
        log.debug("User %s joined giveaway %s (%d total).", member.id, message_id, count)
        await self._refresh_display(giveaway, participants=count)
        return count

    async def evaluate_guess(self, message: discord.Message) -> GuessOutcome:
        author = message.author
        if getattr(author, "bot", False) or not isinstance(message.channel, discord.Thread):
            return GuessOutcome.IGNORED
        game = self.state.get_game(message.channel.id)
        if game is None:
            return GuessOutcome.IGNORED
        now = self._clock()
        if now >= game.end_timestamp:
            return GuessOutcome.IGNORED

        content = (message.content or "").strip()
        if not GUESS_RE.match(content):
            return GuessOutcome.IGNORED
        guess = int(content)

        if game.required_role_id and not member_has_role(author, game.required_role_id):
            return GuessOutcome.IGNORED

        key = (game.thread_id, author.id)
        if not self.cooldowns.try_acquire(key, now, game.cooldown_ms):
            await self._signal_rate_limited(message, game)
            return GuessOutcome.RATE_LIMITED

        if guess == game.secret_number:
            won = await self.resolve_guess_win(game, author)
            return GuessOutcome.WIN if won else GuessOutcome.IGNORED

        if game.hints_enabled:
            if game.secret_number > guess:
                outcome, emoji = GuessOutcome.HIGHER, HIGHER_EMOJI
            else:
                outcome, emoji = GuessOutcome.LOWER, LOWER_EMOJI
        else:
            outcome, emoji = GuessOutcome.MISS, MISS_EMOJI
        await self._react(message, emoji)
        return outcome

    # --- Resolution -------------------------------------------------------

    async def resolve_guess_win(self, game: ActiveGame, winner: discord.abc.User) -> bool:
        if not await self.store.mark_ended(game.message_id):
            self.state.remove_game(game.thread_id)
            log.info(
                "Guess giveaway %s already ended; ignoring win by %s.",
                game.message_id,
                winner.id,
            )
            return False
        self.state.remove_game(game.thread_id)
        self.cooldowns.forget_thread(game.thread_id)
        log.info("Guess giveaway %s won by %s.", game.message_id, winner.id)

        giveaway = await self.store.get_giveaway(game.message_id)
        if giveaway is None:
            return True
        giveaway.data.winner_id = winner.id  # type: ignore[union-attr]
        await self.store.save_result(giveaway.message_id, giveaway.data)

        await self._edit_display(giveaway, embeds.guess_won_embed(giveaway, winner.id))
        await self._announce_in_thread(
            game.thread_id,
            f"🎉 **WINNER:** <@{winner.id}> guessed {game.secret_number}!",
        )
        await self._notify_logger(
            f"Guess giveaway **{giveaway.prize}** (`{giveaway.message_id}`) won by "
            f"<@{winner.id}>."
        )
        return True

    async def resolve_expired(self, now: Optional[int] = None) -> List[Giveaway]:
        """End every active giveaway whose deadline has passed."""
        now = self._clock() if now is None else now
        resolved: List[Giveaway] = []
        for giveaway in await self.store.list_expired(now):
            try:
                if await self.end_giveaway(giveaway):
                    resolved.append(giveaway)
            except Exception:
                log.exception("Failed to resolve expired giveaway %s", giveaway.message_id)
        return resolved

    async def end_giveaway(self, giveaway: Giveaway) -> bool:
        if not await self.store.mark_ended(giveaway.message_id):
            return False
        giveaway.status = GiveawayStatus.ENDED
        log.info("Ending giveaway %s (type: %s).", giveaway.message_id, giveaway.type.value)

        if giveaway.type is GiveawayType.GUESS:
            await self._expire_guess(giveaway)
            summary = "expired with no winner"
        else:
            winners = await self._finish_classic(giveaway)
            summary = (
                f"finished with {len(winners)} winner(s): {embeds.mentions(winners)}"
                if winners
                else "finished with no participants"
            )
        await self._notify_logger(
            f"Giveaway **{giveaway.prize}** (`{giveaway.message_id}`) {summary}."
        )
        return True

    async def _expire_guess(self, giveaway: Giveaway) -> None:
        self.state.remove_game(giveaway.thread_id)
        if giveaway.thread_id is not None:
            self.cooldowns.forget_thread(giveaway.thread_id)
        secret = giveaway.data.secret_number  # type: ignore[union-attr]
        await self._edit_display(giveaway, embeds.guess_expired_embed(giveaway))
        if giveaway.thread_id is not None:
            await self._announce_in_thread(
                giveaway.thread_id, f"⏰ Time up! The number was {secret}."
            )

    async def _finish_classic(self, giveaway: Giveaway) -> List[int]:
        data: ClassicData = giveaway.data  # type: ignore[assignment]
        participants = await self.store.list_participants(giveaway.message_id)
        winners = draw_winners(
            [participant.user_id for participant in participants],
            data.winner_count,
            self._rng,
        )
        data.winners = winners
        if winners:
            await self.store.save_result(giveaway.message_id, data)
            channel = await self._fetch_text_channel(giveaway.channel_id)
            if channel is None:
                log.warning(
                    "Unable to locate channel %s for giveaway %s",
                    giveaway.channel_id,
                    giveaway.message_id,
                )
            else:
                try:
                    await channel.send(
                        f"Congratulations {embeds.mentions(winners)}! "
                        f"You won **{giveaway.prize}**!"
                    )
                except discord.HTTPException as exc:
                    log.warning(
                        "Failed to announce winners of giveaway %s: %s",
                        giveaway.message_id,
                        exc,
                    )

        await self._edit_display(
            giveaway,
            embeds.classic_result_embed(giveaway, winners, len(participants)),
            clear_view=True,
        )
        return winners

    # --- Maintenance ------------------------------------------------------

    def sweep(self, now: Optional[int] = None) -> tuple[int, int]:
        """Drop stale cooldown entries and abandoned pending creations."""
        now = self._clock() if now is None else now
        cooldowns_removed = self.cooldowns.sweep(now)
        ttl_ms = self.config.giveaways.pending_ttl_minutes * 60_000
        pending_removed = self.state.prune_pending(now - ttl_ms)
        if pending_removed:
            log.info("Discarded %d abandoned guess giveaway setup(s).", pending_removed)
        return cooldowns_removed, pending_removed

    def is_admin(
        self,
        member: discord.Member,
        *,
        guild_owner_id: Optional[int] = None,
        base_permissions: Optional[discord.Permissions] = None,
    ) -> bool:
        owner_id = guild_owner_id
        if owner_id is None:
            owner_id = getattr(getattr(member, "guild", None), "owner_id", None)
        if owner_id is not None and owner_id == member.id:
            return True

        permissions_obj = base_permissions
        if permissions_obj is None:
            permissions_obj = getattr(member, "guild_permissions", None)
        if permissions_obj and (
            permissions_obj.administrator or permissions_obj.manage_guild
        ):
            return True

        admin_roles = set(self.config.permissions.admin_roles)
        if any(member_has_role(member, role_id) for role_id in admin_roles):
            return True

        log.debug(
            "Member %s lacks giveaway admin rights (admin roles %s).",
            member.id,
            sorted(admin_roles),
        )
        return False

    # --- Display helpers --------------------------------------------------

    async def _refresh_display(
        self, giveaway: Giveaway, *, participants: Optional[int] = None
    ) -> bool:
        if participants is None and giveaway.type is GiveawayType.CLASSIC:
            participants = await self.store.count_participants(giveaway.message_id)
        return await self._edit_display(
            giveaway, embeds.render(giveaway, participants=participants or 0)
        )

    async def _edit_display(
        self, giveaway: Giveaway, embed: discord.Embed, *, clear_view: bool = False
    ) -> bool:
        channel = await self._fetch_text_channel(giveaway.channel_id)
        message = (
            await self._fetch_message(channel, giveaway.message_id) if channel else None
        )
        if message is None:
            log.warning(
                "Display sync failed for giveaway %s: message unavailable.",
                giveaway.message_id,
            )
            return False
        try:
            if clear_view:
                await message.edit(embed=embed, view=None)
            else:
                await message.edit(embed=embed)
        except discord.HTTPException as exc:
            log.warning("Display sync failed for giveaway %s: %s", giveaway.message_id, exc)
            return False
        return True

    async def _announce_in_thread(self, thread_id: int, content: str) -> None:
        thread = await self._fetch_thread(thread_id)
        if thread is None:
            log.warning("Thread %s unavailable for announcement.", thread_id)
            return
        try:
            await thread.send(content)
        except discord.HTTPException as exc:
            log.warning("Failed to announce in thread %s: %s", thread_id, exc)
        try:
            await thread.edit(archived=True)
        except discord.HTTPException as exc:
            log.warning("Failed to archive thread %s: %s", thread_id, exc)

    async def _signal_rate_limited(
        self, message: discord.Message, game: ActiveGame
    ) -> None:
        defaults = self.config.giveaways
        if defaults.rate_limit_feedback == "reply":
            try:
                await message.reply(
                    f"⏳ Please wait {humanize_ms(game.cooldown_ms)} between guesses.",
                    delete_after=defaults.rate_limit_reply_seconds,
                )
            except discord.HTTPException as exc:
                log.debug("Failed to send cooldown reply: %s", exc)
            return
        await self._react(message, RATE_LIMIT_EMOJI)

    async def _react(self, message: discord.Message, emoji: str) -> None:
        try:
            await message.add_reaction(emoji)
        except discord.HTTPException as exc:
            log.debug("Failed to react to message %s: %s", message.id, exc)

    async def _notify_logger(self, message: str) -> None:
        channel_id = self.config.logging.logger_channel_id
        if not channel_id:
            return
        channel = await self._fetch_text_channel(channel_id)
        if channel:
            try:
                await channel.send(f"[Giveaway] {message}")
            except discord.HTTPException as exc:
                log.warning("Failed to send log message to %s: %s", channel_id, exc)

    async def _fetch_text_channel(
        self, channel_id: int
    ) -> Optional[discord.TextChannel]:
        channel = self.bot.get_channel(channel_id)
        if isinstance(channel, discord.TextChannel):
            return channel
        try:
            fetched = await self.bot.fetch_channel(channel_id)
        except (discord.NotFound, discord.Forbidden, discord.HTTPException):
            return None
        return fetched if isinstance(fetched, discord.TextChannel) else None

    async def _fetch_thread(self, thread_id: int) -> Optional[discord.Thread]:
        thread = self.bot.get_channel(thread_id)
        if isinstance(thread, discord.Thread):
            return thread
        try:
            fetched = await self.bot.fetch_channel(thread_id)
        except (discord.NotFound, discord.Forbidden, discord.HTTPException):
            return None
        return fetched if isinstance(fetched, discord.Thread) else None

    async def _fetch_message(
        self, channel: discord.TextChannel, message_id: int
    ) -> Optional[discord.Message]:
        try:
            return await channel.fetch_message(message_id)
        except (discord.NotFound, discord.Forbidden, discord.HTTPException):
            return None
