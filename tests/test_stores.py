import datetime

import pytest

from core.errors import ConfigurationError, StoreError, ValidationError
from models.punishments import PunishmentKind


NOW = datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)


def test_punishment_round_trips_with_removed_roles(context) -> None:
    expires = NOW + datetime.timedelta(days=1)
    created = context.punishments.create(42, 7, PunishmentKind.DUNCE, NOW, expires, [30, 10, 20, 10])

    loaded = context.punishments.get(created.id)
    assert loaded is not None
    assert loaded.kind is PunishmentKind.DUNCE
    assert loaded.created_at == NOW
    assert loaded.expires == expires
    assert loaded.removed_role_ids == {10, 20, 30}
    assert len(loaded.removed_roles) == 3


def test_indefinite_punishment_has_no_expiry(context) -> None:
    created = context.punishments.create(42, 7, PunishmentKind.BAN, NOW, None, [])
    assert context.punishments.get(created.id).expires is None


def test_one_punishment_per_kind_per_user(context) -> None:
    context.punishments.create(42, 7, PunishmentKind.DUNCE, NOW, None, [1])
    with pytest.raises(StoreError, match="already has an active dunce"):
        context.punishments.create(42, 7, PunishmentKind.DUNCE, NOW, None, [2])

    # The failed insert must not leave removed-role rows behind.
    (only,) = context.punishments.find(42, 7, PunishmentKind.DUNCE)
    assert only.removed_role_ids == {1}

    context.punishments.create(42, 7, PunishmentKind.BAN, NOW, None, [])
    context.punishments.create(43, 7, PunishmentKind.DUNCE, NOW, None, [])
    assert len(context.punishments.for_user(42, 7)) == 2


def test_delete_reports_missing_rows(context) -> None:
    created = context.punishments.create(42, 7, PunishmentKind.DUNCE, NOW, None, [1, 2])
    assert context.punishments.delete(created.id) is True
    assert context.punishments.delete(created.id) is False
    # Removed roles outlive the punishment until they are restored.
    assert {row.role_id for row in context.punishments.removed_roles(created.id)} == {1, 2}
    assert context.punishments.delete_removed_roles(created.id) == 2
    assert context.punishments.removed_roles(created.id) == []


def test_for_server_only_returns_that_server(context) -> None:
    context.punishments.create(42, 7, PunishmentKind.DUNCE, NOW, None, [])
    context.punishments.create(42, 8, PunishmentKind.BAN, NOW, None, [])
    context.punishments.create(99, 7, PunishmentKind.BAN, NOW, None, [])
    assert {p.user_id for p in context.punishments.for_server(42)} == {7, 8}


def test_server_policy_requires_setup(context) -> None:
    assert context.servers.get(42) is None
    with pytest.raises(ConfigurationError):
        context.servers.set_dunce_role(42, 5)
    with pytest.raises(ConfigurationError):
        context.servers.enable_verification(42, 1, 2, "✅", None)


def test_server_policy_updates(context) -> None:
    context.servers.set_mod_role(42, 100)
    context.servers.set_mod_role(42, 101)
    policy = context.servers.set_dunce_role(42, 5)
    assert policy.mod_role_id == 101
    assert policy.dunce_role_id == 5

    policy = context.servers.enable_verification(42, 6, 555, "✅", 24)
    assert policy.kick_enabled
    assert policy.verification_message_id == 555

    policy = context.servers.disable_verification(42)
    assert not policy.verification_enabled
    assert policy.verification_timeout is None
    assert policy.dunce_role_id == 5


def test_enable_verification_rejects_negative_timeout(context) -> None:
    context.servers.set_mod_role(42, 100)
    with pytest.raises(ValidationError):
        context.servers.enable_verification(42, 6, 555, "✅", -3)
    assert not context.servers.get(42).verification_enabled


def test_optional_roles(context) -> None:
    context.optional_roles.set_role(42, 10, "🎮", "Gamers")
    context.optional_roles.set_role(42, 11)
    context.optional_roles.set_role(42, 10, None, "Updated")
    context.optional_roles.set_role(43, 12)

    roles = context.optional_roles.for_server(42)
    assert [role.role_id for role in roles] == [10, 11]
    assert roles[0].emoji is None
    assert roles[0].description == "Updated"

    assert context.optional_roles.remove_role(42, 10) is True
    assert context.optional_roles.remove_role(42, 10) is False
    assert [role.role_id for role in context.optional_roles.for_server(42)] == [11]
