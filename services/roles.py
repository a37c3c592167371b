from dataclasses import dataclass
from typing import AbstractSet, FrozenSet

from core.context import BotContext
from core.errors import ValidationError
from services.platform import Platform


@dataclass(frozen=True)
class RoleDiff:
    to_add: FrozenSet[int]
    to_remove: FrozenSet[int]

    def is_empty(self) -> bool:
        return not self.to_add and not self.to_remove


def diff_roles(current: AbstractSet[int], desired: AbstractSet[int]) -> RoleDiff:
    return RoleDiff(
        to_add=frozenset(desired) - frozenset(current),
        to_remove=frozenset(current) - frozenset(desired),
    )


async def apply_role_diff(
    platform: Platform,
    server_id: int,
    user_id: int,
    diff: RoleDiff,
    reason: str,
) -> None:
    """Issue at most one batched add and one batched remove for ``diff``."""
    if diff.to_add:
        await platform.add_roles(server_id, user_id, diff.to_add, reason)
    if diff.to_remove:
        await platform.remove_roles(server_id, user_id, diff.to_remove, reason)


async def sync_optional_roles(
    context: BotContext,
    server_id: int,
    user_id: int,
    selected: AbstractSet[int],
) -> RoleDiff:
    """Make the member's optional roles match ``selected``; other roles are left alone."""
    optional_ids = {role.role_id for role in context.optional_roles.for_server(server_id)}
    if not optional_ids:
        raise ValidationError("No optional roles set for this server.")
    state = await context.platform.member_state(server_id, user_id)
    diff = diff_roles(state.role_ids & optional_ids, set(selected) & optional_ids)
    await apply_role_diff(context.platform, server_id, user_id, diff, reason="Optional role selection")
    return diff
