from typing import List, Optional, Sequence

import discord

from core.context import BotContext
from core.errors import DomainError
from core.logger import get_logger
from services.roles import RoleDiff, sync_optional_roles


logger = get_logger(__name__)

# Discord rejects select menus with more options than this.
MAX_SELECT_OPTIONS = 25


def describe_role_changes(diff: RoleDiff, names: dict) -> str:
    if diff.is_empty():
        return "Didn't make any changes!"
    lines: List[str] = []
    if diff.to_add:
        lines.append("Added roles: " + ", ".join(sorted(names.get(r, str(r)) for r in diff.to_add)))
    if diff.to_remove:
        lines.append("Removed roles: " + ", ".join(sorted(names.get(r, str(r)) for r in diff.to_remove)))
    return "\n".join(lines)


class OptionalRoleSelect(discord.ui.Select["RoleSelectView"]):
    def __init__(self, options: Sequence[discord.SelectOption]) -> None:
        super().__init__(
            placeholder="Select optional roles",
            min_values=0,
            max_values=len(options),
            options=list(options),
        )

    async def callback(self, interaction: discord.Interaction) -> None:  # type: ignore[override]
        view = self.view
        if view is None or interaction.guild_id is None:
            return
        selected = {int(value) for value in self.values}
        diff = await sync_optional_roles(view.context, interaction.guild_id, interaction.user.id, selected)
        names = view.context.platform.role_names(interaction.guild_id, diff.to_add | diff.to_remove)
        await interaction.response.send_message(describe_role_changes(diff, names), ephemeral=True)


class RoleSelectView(discord.ui.View):
    def __init__(
        self,
        context: BotContext,
        options: Sequence[discord.SelectOption],
        *,
        timeout: Optional[float] = 180.0,
    ) -> None:
        super().__init__(timeout=timeout)
        self.context = context
        if len(options) > MAX_SELECT_OPTIONS:
            logger.warning("Only the first %d optional roles can be offered", MAX_SELECT_OPTIONS)
        self.add_item(OptionalRoleSelect(options[:MAX_SELECT_OPTIONS]))

    async def on_error(self, interaction: discord.Interaction, error: Exception, item: discord.ui.Item) -> None:  # type: ignore[override]
        if isinstance(error, DomainError):
            message = error.cause
        else:
            logger.error("Role selection failed", exc_info=error)
            message = "An error occurred while updating your roles."
        if interaction.response.is_done():
            await interaction.followup.send(message, ephemeral=True)
        else:
            await interaction.response.send_message(message, ephemeral=True)
