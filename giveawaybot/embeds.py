"""Embed rendering for giveaway display messages.

Displays are always rebuilt from the structured giveaway state, never patched
from previously rendered text.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Iterable, Optional

import discord

from .durations import humanize_ms
from .models import ClassicData, Giveaway, GiveawayType, GuessData

CLASSIC_COLOR = discord.Color(0x0099FF)
GUESS_COLOR = discord.Color(0xFFD700)
WIN_COLOR = discord.Color(0x00FF00)
EXPIRED_COLOR = discord.Color(0xFF0000)


def _ends_value(end_timestamp: int) -> str:
    unix = end_timestamp // 1000
    return f"<t:{unix}:R> (<t:{unix}:f>)"


def _role_value(role_id: Optional[int]) -> str:
    return f"<@&{role_id}>" if role_id else "None"


def mentions(user_ids: Iterable[int]) -> str:
    return ", ".join(f"<@{user_id}>" for user_id in user_ids)


def _base_embed(
    giveaway: Giveaway, *, title: str, description: str, color: discord.Color
) -> discord.Embed:
    embed = discord.Embed(title=title, description=description, color=color)
    if giveaway.image_url:
        embed.set_image(url=giveaway.image_url)
    return embed


def classic_embed(giveaway: Giveaway, participants: int) -> discord.Embed:
    data: ClassicData = giveaway.data  # type: ignore[assignment]
    embed = _base_embed(
        giveaway,
        title=f"🎉 GIVEAWAY: {giveaway.prize}",
        description="Click the button below to enter!",
        color=CLASSIC_COLOR,
    )
    embed.add_field(name="Winners", value=str(data.winner_count), inline=True)
    embed.add_field(name="Participants", value=str(participants), inline=True)
    embed.add_field(name="Ends", value=_ends_value(giveaway.end_timestamp), inline=False)
    embed.add_field(
        name="Required Role", value=_role_value(data.required_role_id), inline=True
    )
    embed.set_footer(text="Ends at")
    embed.timestamp = datetime.fromtimestamp(giveaway.end_timestamp / 1000, tz=UTC)
    return embed


def classic_result_embed(
    giveaway: Giveaway, winners: Iterable[int], participants: int
) -> discord.Embed:
    winner_ids = list(winners)
    if winner_ids:
        description = f"🎉 **WINNERS:** {mentions(winner_ids)}"
        color = WIN_COLOR
    else:
        description = "❌ No one joined the giveaway."
        color = EXPIRED_COLOR
    embed = _base_embed(
        giveaway,
        title=f"🎉 GIVEAWAY: {giveaway.prize}",
        description=f"{description}\n\n**Prize:** {giveaway.prize}",
        color=color,
    )
    embed.add_field(name="Participants", value=str(participants), inline=True)
    embed.set_footer(text="Giveaway Ended")
    return embed


def guess_embed(giveaway: Giveaway) -> discord.Embed:
    data: GuessData = giveaway.data  # type: ignore[assignment]
    embed = _base_embed(
        giveaway,
        title=f"🔢 Guess the Number: {giveaway.prize}",
        description="Guess the secret number in the thread!",
        color=GUESS_COLOR,
    )
    embed.add_field(name="Ends", value=_ends_value(giveaway.end_timestamp), inline=False)
    embed.add_field(
        name="Required Role", value=_role_value(data.required_role_id), inline=True
    )
    embed.add_field(name="Cooldown", value=humanize_ms(data.cooldown_ms), inline=True)
    embed.add_field(
        name="Hints", value="Enabled" if data.hints_enabled else "Disabled", inline=True
    )
    return embed


def guess_won_embed(giveaway: Giveaway, winner_id: int) -> discord.Embed:
    data: GuessData = giveaway.data  # type: ignore[assignment]
    return _base_embed(
        giveaway,
        title=f"🔢 Guess the Number: {giveaway.prize}",
        description=(
            f"**WINNER:** <@{winner_id}>\n"
            f"**Prize:** {giveaway.prize}\n"
            f"**Number:** {data.secret_number}"
        ),
        color=WIN_COLOR,
    )


def guess_expired_embed(giveaway: Giveaway) -> discord.Embed:
    data: GuessData = giveaway.data  # type: ignore[assignment]
    return _base_embed(
        giveaway,
        title=f"🔢 Guess the Number: {giveaway.prize}",
        description=(
            f"❌ **Expired:** No one guessed the number ({data.secret_number})."
        ),
        color=EXPIRED_COLOR,
    )


def render(giveaway: Giveaway, *, participants: int = 0) -> discord.Embed:
    """Render the display matching the giveaway's current state."""
    if giveaway.type is GiveawayType.GUESS:
        data: GuessData = giveaway.data  # type: ignore[assignment]
        if giveaway.is_active:
            return guess_embed(giveaway)
        if data.winner_id is not None:
            return guess_won_embed(giveaway, data.winner_id)
        return guess_expired_embed(giveaway)

    classic: ClassicData = giveaway.data  # type: ignore[assignment]
    if giveaway.is_active:
        return classic_embed(giveaway, participants)
    return classic_result_embed(giveaway, classic.winners, participants)
