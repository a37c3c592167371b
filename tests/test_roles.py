import pytest

from core.errors import ValidationError
from core.views import describe_role_changes
from services.roles import RoleDiff, apply_role_diff, diff_roles, sync_optional_roles


SERVER = 42
USER = 7


def test_diff_roles() -> None:
    diff = diff_roles({1, 2, 3}, {2, 3, 4})
    assert diff.to_add == {4}
    assert diff.to_remove == {1}
    assert diff_roles({1}, {1}).is_empty()


@pytest.mark.asyncio
async def test_empty_diff_makes_no_calls(platform) -> None:
    platform.add_member(SERVER, USER, roles={1})
    await apply_role_diff(platform, SERVER, USER, RoleDiff(frozenset(), frozenset()), "noop")
    assert platform.calls == []


@pytest.mark.asyncio
async def test_diff_is_applied_as_one_add_and_one_remove(platform) -> None:
    platform.add_member(SERVER, USER, roles={1, 2, 3})
    await apply_role_diff(platform, SERVER, USER, diff_roles({1, 2, 3}, {4, 5}), "swap")
    assert platform.calls == [
        ("add_roles", SERVER, USER, frozenset({4, 5})),
        ("remove_roles", SERVER, USER, frozenset({1, 2, 3})),
    ]
    assert platform.member(SERVER, USER).roles == {4, 5}


@pytest.mark.asyncio
async def test_sync_only_touches_optional_roles(context, platform) -> None:
    for role_id in (20, 21, 22):
        context.optional_roles.set_role(SERVER, role_id)
    platform.add_member(SERVER, USER, roles={1, 20, 21})

    diff = await sync_optional_roles(context, SERVER, USER, {21, 22, 99})

    assert diff.to_add == {22}
    assert diff.to_remove == {20}
    assert platform.member(SERVER, USER).roles == {1, 21, 22}


@pytest.mark.asyncio
async def test_sync_with_unchanged_selection_does_nothing(context, platform) -> None:
    context.optional_roles.set_role(SERVER, 20)
    platform.add_member(SERVER, USER, roles={20})

    diff = await sync_optional_roles(context, SERVER, USER, {20})

    assert diff.is_empty()
    assert platform.calls == []


@pytest.mark.asyncio
async def test_sync_requires_optional_roles(context, platform) -> None:
    platform.add_member(SERVER, USER)
    with pytest.raises(ValidationError, match="No optional roles"):
        await sync_optional_roles(context, SERVER, USER, set())


def test_describe_role_changes() -> None:
    names = {20: "Gamers", 21: "Artists", 22: "Readers"}
    diff = RoleDiff(to_add=frozenset({22, 20}), to_remove=frozenset({21}))
    assert describe_role_changes(diff, names) == "Added roles: Gamers, Readers\nRemoved roles: Artists"
    assert describe_role_changes(RoleDiff(frozenset(), frozenset()), names) == "Didn't make any changes!"
