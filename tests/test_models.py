import datetime

import pytest

from core.errors import ValidationError
from models.punishments import PunishmentDuration, PunishmentKind
from models.servers import ServerPolicy


NOW = datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)


def test_all_zero_duration_is_indefinite() -> None:
    duration = PunishmentDuration()
    assert duration.is_indefinite()
    assert duration.expires_from(NOW) is None


@pytest.mark.parametrize(
    "kwargs, expected",
    [
        ({"minutes": 30}, datetime.timedelta(minutes=30)),
        ({"hours": 2, "minutes": 5}, datetime.timedelta(hours=2, minutes=5)),
        ({"days": 1}, datetime.timedelta(days=1)),
        ({"weeks": 1}, datetime.timedelta(days=7)),
        ({"months": 1}, datetime.timedelta(weeks=4)),
        ({"years": 1}, datetime.timedelta(weeks=48)),
        (
            {"years": 1, "months": 2, "weeks": 3, "days": 4, "hours": 5, "minutes": 6},
            datetime.timedelta(weeks=48 + 8 + 3, days=4, hours=5, minutes=6),
        ),
    ],
)
def test_duration_uses_fixed_calendar_approximation(kwargs, expected) -> None:
    duration = PunishmentDuration(**kwargs)
    assert duration.total() == expected
    assert duration.expires_from(NOW) == NOW + expected


def test_negative_duration_component_is_rejected() -> None:
    with pytest.raises(ValidationError):
        PunishmentDuration(days=-1)


def test_kind_values_match_stored_text() -> None:
    assert PunishmentKind("dunce") is PunishmentKind.DUNCE
    assert PunishmentKind("ban") is PunishmentKind.BAN


def test_policy_verification_fields_are_all_or_nothing() -> None:
    with pytest.raises(ValidationError):
        ServerPolicy(id=1, mod_role_id=2, verified_role_id=3)
    with pytest.raises(ValidationError):
        ServerPolicy(id=1, mod_role_id=2, verification_timeout=4)
    with pytest.raises(ValidationError):
        ServerPolicy(
            id=1,
            mod_role_id=2,
            verified_role_id=3,
            verification_message_id=4,
            verification_emoji="✅",
            verification_timeout=-1,
        )


def test_policy_flags() -> None:
    plain = ServerPolicy(id=1, mod_role_id=2)
    assert not plain.verification_enabled
    assert not plain.kick_enabled

    enabled = ServerPolicy(id=1, mod_role_id=2, verified_role_id=3, verification_message_id=4, verification_emoji="✅")
    assert enabled.verification_enabled
    assert not enabled.kick_enabled

    kicking = ServerPolicy(
        id=1,
        mod_role_id=2,
        verified_role_id=3,
        verification_message_id=4,
        verification_emoji="✅",
        verification_timeout=0,
    )
    assert kicking.kick_enabled
