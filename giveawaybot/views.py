from __future__ import annotations

import logging

import discord

from .errors import GiveawayError

log = logging.getLogger(__name__)

JOIN_CUSTOM_ID = "giveaway:join"
SECRET_MODAL_CUSTOM_ID = "giveaway:guess:secret"


async def send_failure(interaction: discord.Interaction, message: str) -> None:
    """Reply privately, whether or not the interaction was already answered."""
    try:
        if interaction.response.is_done():
            await interaction.followup.send(message, ephemeral=True)
        else:
            await interaction.response.send_message(message, ephemeral=True)
    except discord.HTTPException as exc:
        log.warning("Unable to deliver failure response: %s", exc)


class ClassicJoinView(discord.ui.View):
    """Persistent join button; the giveaway is the message the button is on."""

    def __init__(self, manager) -> None:
        super().__init__(timeout=None)
        self.manager = manager

        join_button = discord.ui.Button(
            label="🎉 Join Giveaway",
            style=discord.ButtonStyle.primary,
            custom_id=JOIN_CUSTOM_ID,
        )
        join_button.callback = self.join_callback  # type: ignore[assignment]
        self.add_item(join_button)

    async def join_callback(self, interaction: discord.Interaction) -> None:
        if not interaction.guild or not isinstance(interaction.user, discord.Member):
            await interaction.response.send_message(
                "You can only join giveaways from a guild.", ephemeral=True
            )
            return
        if interaction.message is None:
            await interaction.response.send_message(
                "Giveaway not found.", ephemeral=True
            )
            return
        try:
            count = await self.manager.join_classic(
                interaction.message.id, interaction.user
            )
        except GiveawayError as exc:
            # AlreadyJoined lands here too; it is informational, not a failure.
            await interaction.response.send_message(exc.user_message, ephemeral=True)
            return
        await interaction.response.send_message(
            f"✅ You have joined the giveaway! ({count} participant(s))",
            ephemeral=True,
        )

    async def on_error(
        self,
        interaction: discord.Interaction,
        error: Exception,
        item: discord.ui.Item,
    ) -> None:
        log.exception("Unhandled error in giveaway button %s", item, exc_info=error)
        await send_failure(interaction, "Something went wrong. Please try again.")


class SecretNumberModal(discord.ui.Modal, title="Set Secret Number"):
    secret_number = discord.ui.TextInput(
        label="Winning Number",
        style=discord.TextStyle.short,
        required=True,
        max_length=18,
    )

    def __init__(self, manager) -> None:
        super().__init__(custom_id=SECRET_MODAL_CUSTOM_ID)
        self.manager = manager

    async def on_submit(self, interaction: discord.Interaction) -> None:
        channel = interaction.channel
        if interaction.guild is None or not isinstance(channel, discord.TextChannel):
            await interaction.response.send_message(
                "Guess games can only be started in a server text channel.",
                ephemeral=True,
            )
            return
        try:
            self.manager.validate_secret_number(self.secret_number.value)
        except GiveawayError as exc:
            await interaction.response.send_message(exc.user_message, ephemeral=True)
            return

        await interaction.response.defer(ephemeral=True, thinking=True)
        giveaway = await self.manager.complete_guess_giveaway(
            interaction.user.id,
            self.secret_number.value,
            channel=channel,
            guild_id=interaction.guild.id,
        )
        if giveaway is None:
            await interaction.followup.send(
                "This giveaway setup has expired. Run /guess_number again.",
                ephemeral=True,
            )
            return
        await interaction.followup.send(
            f"Guess the number giveaway started in <#{giveaway.thread_id}>.",
            ephemeral=True,
        )

    async def on_error(
        self, interaction: discord.Interaction, error: Exception
    ) -> None:
        log.exception("Unhandled error in secret number modal", exc_info=error)
        await send_failure(interaction, "Something went wrong. Please try again.")
