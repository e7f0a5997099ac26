from __future__ import annotations

from uuid import uuid4

import pytest
from fastapi import HTTPException
from jose import jwt
from pydantic import ValidationError

from tutorslots.core.config import Settings
from tutorslots.core.enums import DayOfWeekEnum, RoleEnum
from tutorslots.core.security import create_access_token, decode_token
from tutorslots.modules.identity.service import actor_from_claims


def test_default_secret_key_allowed_in_development() -> None:
    settings = Settings(_env_file=None, app_env="development", secret_key="change-me")
    assert settings.secret_key == "change-me"


def test_default_secret_key_rejected_in_production() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, app_env="production", secret_key="change-me")


def test_placeholder_secret_key_prefix_rejected_in_production() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, app_env="prod", secret_key="change-me-in-production")


def test_custom_secret_key_allowed_in_production() -> None:
    settings = Settings(_env_file=None, app_env="production", secret_key="super-secure-value")
    assert settings.secret_key == "super-secure-value"


def test_booking_policy_defaults() -> None:
    settings = Settings(_env_file=None)

    assert settings.booking_min_advance_minutes == 60
    assert settings.slot_cancel_notice_hours == 12
    assert settings.session_cancel_notice_hours == 24
    assert settings.default_slot_timezone == "Australia/Sydney"
    assert settings.slot_allowed_days == tuple(DayOfWeekEnum)


def test_allowed_days_parsed_from_comma_separated_value() -> None:
    settings = Settings(_env_file=None, slot_allowed_days="monday, Tuesday,SUNDAY")
    assert settings.slot_allowed_days == (
        DayOfWeekEnum.MONDAY,
        DayOfWeekEnum.TUESDAY,
        DayOfWeekEnum.SUNDAY,
    )


def test_allowed_days_read_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SLOT_ALLOWED_DAYS", "Monday,Friday")
    settings = Settings(_env_file=None)
    assert settings.slot_allowed_days == (DayOfWeekEnum.MONDAY, DayOfWeekEnum.FRIDAY)


def test_empty_allowed_days_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, slot_allowed_days="")


def test_unknown_default_timezone_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, default_slot_timezone="Mars/Olympus_Mons")


def test_access_token_round_trip_builds_actor() -> None:
    user_id = uuid4()
    token = create_access_token(str(user_id), role="tutor")

    actor = actor_from_claims(decode_token(token))

    assert actor.id == user_id
    assert actor.role == RoleEnum.TUTOR
    assert actor.is_admin is False


def test_token_signed_with_foreign_key_is_rejected() -> None:
    token = jwt.encode({"sub": str(uuid4()), "role": "admin", "type": "access"}, "someone-else", algorithm="HS256")

    with pytest.raises(HTTPException) as exc:
        decode_token(token)
    assert exc.value.status_code == 401


def test_token_with_unknown_role_is_rejected() -> None:
    with pytest.raises(HTTPException) as exc:
        actor_from_claims({"sub": str(uuid4()), "role": "parent", "type": "access"})
    assert exc.value.status_code == 401


def test_refresh_token_cannot_act_as_caller() -> None:
    with pytest.raises(HTTPException):
        actor_from_claims({"sub": str(uuid4()), "role": "student", "type": "refresh"})
