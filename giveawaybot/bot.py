from __future__ import annotations

import argparse
import asyncio
import logging
import os
from pathlib import Path
from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands, tasks

from .config import Config, ConfigError, load_config
from .errors import DisplaySyncFailure, GiveawayError, NotFound
from .giveaway_manager import GiveawayManager
from .storage import GiveawayStore
from .views import SecretNumberModal, send_failure

log = logging.getLogger(__name__)
PERMISSION_LOG = logging.getLogger("giveaway.permissions")
ENV_PATH = Path(".env")


def _load_env_file(path: Path = ENV_PATH) -> None:
    if not path.exists():
        return
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError:
        return
    for line in raw.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if "=" not in stripped:
            continue
        key, value = stripped.split("=", 1)
        key = key.strip()
        if not key:
            continue
        value = value.strip()
        if value and ((value[0] == value[-1]) and value.startswith(("'", '"'))):
            value = value[1:-1]
        os.environ.setdefault(key, value)


def configure_logging(level: str) -> None:
    console_level = getattr(logging, level.upper(), logging.INFO)
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    root_logger.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    log_dir = Path("logs")
    log_dir.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_dir / "log.txt", encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    # discord.py is chatty at DEBUG
    logging.getLogger("discord").setLevel(max(console_level, logging.INFO))


class GiveawayBot(commands.Bot):
    def __init__(self, config: Config, store: GiveawayStore) -> None:
        intents = discord.Intents.default()
        intents.message_content = True

        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            application_id=config.application_id,
        )
        self.config = config
        self.manager = GiveawayManager(self, config, store)

    async def setup_hook(self) -> None:
        await self.manager.load()
        self._expiry_checker.change_interval(
            seconds=self.config.timers.expiry_poll_seconds
        )
        self._cooldown_sweeper.change_interval(
            minutes=self.config.timers.cooldown_sweep_minutes
        )
        self._expiry_checker.start()
        self._cooldown_sweeper.start()
        await self.tree.sync()
        dev_guild_id = self.config.permissions.development_guild_id
        if dev_guild_id:
            guild = discord.Object(dev_guild_id)
            self.tree.copy_global_to(guild=guild)
            await self.tree.sync(guild=guild)

    @tasks.loop(seconds=10)
    async def _expiry_checker(self) -> None:
        try:
            await self.manager.resolve_expired()
        except Exception:
            log.exception("Expiry poll failed")

    @_expiry_checker.before_loop
    async def _before_expiry_checker(self) -> None:
        await self.wait_until_ready()

    @tasks.loop(minutes=10)
    async def _cooldown_sweeper(self) -> None:
        self.manager.sweep()

    async def on_ready(self) -> None:
        log.info("Logged in as %s (%s)", self.user, self.user.id)  # type: ignore[union-attr]

    async def on_message(self, message: discord.Message) -> None:
        try:
            await self.manager.evaluate_guess(message)
        except Exception:
            log.exception("Failed to evaluate guess in channel %s", message.channel.id)

    async def close(self) -> None:
        self._expiry_checker.cancel()
        self._cooldown_sweeper.cancel()
        await super().close()
        await self.manager.store.close()


async def admin_required(
    interaction: discord.Interaction, manager: GiveawayManager
) -> Optional[str]:
    command_name = getattr(getattr(interaction, "command", None), "name", "unknown")
    user = interaction.user
    guild = interaction.guild
    if guild is None:
        PERMISSION_LOG.debug(
            "Denied command %s for user %s: non-guild context.",
            command_name,
            user.id,
        )
        return "This command can only be used inside a guild."

    member: Optional[discord.Member] = user if isinstance(user, discord.Member) else None
    if member is None:
        member = guild.get_member(user.id)
    if member is None:
        try:
            member = await guild.fetch_member(user.id)
        except (discord.NotFound, discord.Forbidden, discord.HTTPException):
            member = None

    if member is None or not manager.is_admin(
        member,
        guild_owner_id=getattr(guild, "owner_id", None),
        base_permissions=getattr(interaction, "permissions", None),
    ):
        PERMISSION_LOG.warning(
            "Denied command %s for user %s: missing giveaway admin rights.",
            command_name,
            user.id,
        )
        return "You do not have permission to manage giveaways."

    PERMISSION_LOG.debug("Authorized command %s for user %s.", command_name, user.id)
    return None


def build_bot(config_path: Path) -> GiveawayBot:
    _load_env_file()
    config = load_config(config_path)
    configure_logging(config.logging.level)
    store = GiveawayStore(config.storage.path)
    return GiveawayBot(config, store)


def register_commands(bot: GiveawayBot) -> None:
    manager = bot.manager

    @bot.tree.command(
        name="guess_number",
        description='Start a "Guess the Number" giveaway (Thread Based)',
    )
    @app_commands.describe(
        reward="What will the user win?",
        duration="Duration (e.g., 1h, 30m, 2d)",
        required_role="Role required to participate (optional)",
        image="An image for the giveaway embed (optional)",
        hints="React with higher/lower hints on wrong guesses (default: off)",
        cooldown="Time between guesses per user (e.g., 30s, 2m; default 1m)",
    )
    async def guess_number(
        interaction: discord.Interaction,
        reward: str,
        duration: str,
        required_role: Optional[discord.Role] = None,
        image: Optional[discord.Attachment] = None,
        hints: bool = False,
        cooldown: Optional[str] = None,
    ) -> None:
        error = await admin_required(interaction, manager)
        if error:
            await interaction.response.send_message(error, ephemeral=True)
            return
        if not isinstance(interaction.channel, discord.TextChannel):
            await interaction.response.send_message(
                "Guess games can only be started in a server text channel.",
                ephemeral=True,
            )
            return

        try:
            manager.begin_guess_giveaway(
                interaction.user.id,
                prize=reward,
                duration=duration,
                required_role_id=required_role.id if required_role else None,
                image_url=image.url if image else None,
                hints=hints,
                cooldown=cooldown,
            )
        except GiveawayError as exc:
            await interaction.response.send_message(exc.user_message, ephemeral=True)
            return
        await interaction.response.send_modal(SecretNumberModal(manager))

    @bot.tree.command(
        name="classic_giveaway", description="Start a standard button-based giveaway"
    )
    @app_commands.describe(
        reward="What will the user win?",
        duration="Duration (e.g., 1h, 30m, 2d)",
        winners="How many winners?",
        required_role="Role required to participate (optional)",
        image="An image for the giveaway embed (optional)",
    )
    async def classic_giveaway(
        interaction: discord.Interaction,
        reward: str,
        duration: str,
        winners: app_commands.Range[int, 1, 100],
        required_role: Optional[discord.Role] = None,
        image: Optional[discord.Attachment] = None,
    ) -> None:
        error = await admin_required(interaction, manager)
        if error:
            await interaction.response.send_message(error, ephemeral=True)
            return
        channel = interaction.channel
        if interaction.guild is None or not isinstance(channel, discord.TextChannel):
            await interaction.response.send_message(
                "Giveaways can only be started in a server text channel.",
                ephemeral=True,
            )
            return

        await interaction.response.defer(ephemeral=True)
        try:
            giveaway = await manager.start_classic_giveaway(
                channel,
                guild_id=interaction.guild.id,
                organizer_id=interaction.user.id,
                prize=reward,
                duration=duration,
                winners=winners,
                required_role_id=required_role.id if required_role else None,
                image_url=image.url if image else None,
            )
        except GiveawayError as exc:
            await interaction.followup.send(exc.user_message, ephemeral=True)
            return
        await interaction.followup.send(
            f"Giveaway `{giveaway.message_id}` started in {channel.mention}.",
            ephemeral=True,
        )

    @bot.tree.command(name="edit_giveaway", description="Edit an active giveaway.")
    @app_commands.describe(
        message_id="Message ID of the giveaway to edit.",
        new_reward="Updated reward.",
        new_duration="New duration measured from now (e.g., 1h, 30m, 2d).",
    )
    async def edit_giveaway(
        interaction: discord.Interaction,
        message_id: str,
        new_reward: Optional[str] = None,
        new_duration: Optional[str] = None,
    ) -> None:
        error = await admin_required(interaction, manager)
        if error:
            await interaction.response.send_message(error, ephemeral=True)
            return

        await interaction.response.defer(ephemeral=True)
        try:
            target_id = int(message_id.strip())
        except ValueError:
            await interaction.followup.send(NotFound().user_message, ephemeral=True)
            return

        try:
            await manager.edit_giveaway(
                target_id, new_prize=new_reward, new_duration=new_duration
            )
        except DisplaySyncFailure as exc:
            log.warning("Giveaway %s saved but display stale: %s", target_id, exc)
            await interaction.followup.send(exc.user_message, ephemeral=True)
            return
        except GiveawayError as exc:
            await interaction.followup.send(exc.user_message, ephemeral=True)
            return
        await interaction.followup.send(
            f"Giveaway `{target_id}` updated.", ephemeral=True
        )

    @bot.tree.error
    async def on_app_command_error(
        interaction: discord.Interaction, error: app_commands.AppCommandError
    ) -> None:
        command_name = getattr(getattr(interaction, "command", None), "name", "unknown")
        original = getattr(error, "original", error)
        if isinstance(original, GiveawayError):
            await send_failure(interaction, original.user_message)
            return
        log.exception("Unhandled error in command %s", command_name, exc_info=original)
        await send_failure(interaction, "Something went wrong. Please try again.")


async def main() -> None:
    parser = argparse.ArgumentParser(description="Discord Giveaway Bot")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("config") / "config.yaml",
        help="Path to the bot configuration file.",
    )
    args = parser.parse_args()

    try:
        bot = build_bot(args.config)
    except ConfigError as exc:
        raise SystemExit(f"Configuration error: {exc}") from exc

    register_commands(bot)

    async with bot:
        await bot.start(bot.config.token)


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
