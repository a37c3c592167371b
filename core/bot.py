from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from core.config import BotConfig
from core.context import BotContext
from core.errors import DomainError
from core.logger import get_logger
from services.database import Database
from services.lifecycle import PunishmentManager
from services.platform import DiscordPlatform
from services.rejoin import RejoinHandler
from services.scheduler import ReconciliationScheduler
from services.verification import VerificationGate


logger = get_logger(__name__)


COG_EXTENSIONS = [
    "cogs.setup.core",
    "cogs.punishments.core",
    "cogs.verification.core",
    "cogs.roles.core",
]


def describe_command_error(error: app_commands.AppCommandError) -> Optional[str]:
    """User-facing text for an error, or None when it is a bug that should be logged."""
    original: BaseException = error
    if isinstance(error, app_commands.CommandInvokeError):
        original = error.original
    if isinstance(original, DomainError):
        return original.cause
    if isinstance(original, app_commands.CommandNotFound):
        return "Unknown command"
    if isinstance(original, app_commands.CheckFailure):
        return str(original) or "You do not have permission to use this command."
    if isinstance(original, app_commands.TransformerError):
        return f"Couldn't resolve '{original.value}'"
    return None


class RaincoatBot(commands.Bot):
    def __init__(self, config: BotConfig) -> None:
        intents = discord.Intents.default()
        intents.members = True
        intents.guilds = True
        intents.guild_reactions = True
        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            application_id=config.application_id,
        )
        self.config = config
        self.db = Database(config.database_path)
        self.context = BotContext.create(self.db, DiscordPlatform(self))
        self.punishment_manager = PunishmentManager(self.context)
        self.verification_gate = VerificationGate(self.context)
        self.rejoin_handler = RejoinHandler(self.context, self.punishment_manager)
        self.reconciler = ReconciliationScheduler(
            self.context,
            self.punishment_manager,
            interval=config.sweep_interval_seconds,
        )
        self.tree.error(self.on_app_command_error)

    async def setup_hook(self) -> None:
        for ext in COG_EXTENSIONS:
            await self.load_extension(ext)
        if self.config.guild_ids:
            for guild_id in self.config.guild_ids:
                guild = discord.Object(id=guild_id)
                self.tree.copy_global_to(guild=guild)
                await self.tree.sync(guild=guild)
        else:
            await self.tree.sync()

    async def on_ready(self) -> None:
        if self.user is None:
            return
        logger.info("Logged in as %s (%s), managing %d servers", self.user, self.user.id, len(self.guilds))
        self.reconciler.start()

    async def close(self) -> None:
        await self.reconciler.stop()
        await super().close()
        self.db.close()

    async def on_app_command_error(self, interaction: discord.Interaction, error: app_commands.AppCommandError) -> None:
        message = describe_command_error(error)
        if message is None:
            command = interaction.command.qualified_name if interaction.command else "unknown"
            logger.error("Unhandled error in /%s", command, exc_info=error)
            message = "An error occurred while executing this command."
        if interaction.response.is_done():
            sender = interaction.followup.send
        else:
            sender = interaction.response.send_message
        try:
            await sender(message, ephemeral=True)
        except discord.HTTPException:
            logger.warning("Could not deliver error message for interaction %s", interaction.id)
