from datetime import timedelta

import pytest

from authgate.core.exceptions import (
    AuthorizationError,
    InsufficientRoleError,
    MalformedHeaderError,
    MissingTokenError,
    TokenExpiredError,
    TokenInvalidError,
)
from authgate.core.security import create_access_token, utc_now
from authgate.schemas.token import Identity
from authgate.services import access_control

ALICE = Identity(id=1, email="alice@example.com", role="user", name="Alice")
MANAGER = Identity(id=2, email="mia@example.com", role="manager", name="Mia")
ADMIN = Identity(id=3, email="root@example.com", role="admin", name="Root")


@pytest.mark.parametrize("header", [None, ""])
def test_missing_header(header):
    with pytest.raises(MissingTokenError) as exc_info:
        access_control.extract_bearer_token(header)
    assert exc_info.value.status_code == 401
    assert exc_info.value.code == "NO_TOKEN"


@pytest.mark.parametrize(
    "header",
    ["Basic abc", "bearer abc", "Bearer", "Bearer ", "Bearer a b", "Bearer  abc", "abc"],
)
def test_malformed_header(header):
    with pytest.raises(MalformedHeaderError) as exc_info:
        access_control.extract_bearer_token(header)
    assert exc_info.value.status_code == 401
    assert exc_info.value.code == "NO_TOKEN"


def test_extract_bearer_token():
    assert access_control.extract_bearer_token("Bearer abc.def.ghi") == "abc.def.ghi"


def test_authenticate_returns_identity_from_claims():
    header = f"Bearer {create_access_token(ALICE)}"
    assert access_control.authenticate(header) == ALICE


def test_authenticate_expired_token():
    token = create_access_token(ALICE, expires_delta=timedelta(minutes=1), now=utc_now() - timedelta(minutes=5))
    with pytest.raises(TokenExpiredError):
        access_control.authenticate(f"Bearer {token}")


def test_authenticate_invalid_token():
    with pytest.raises(TokenInvalidError) as exc_info:
        access_control.authenticate("Bearer not-a-token")
    assert exc_info.value.status_code == 403


def test_require_role():
    assert access_control.require_role(ADMIN, "admin") is ADMIN

    with pytest.raises(InsufficientRoleError) as exc_info:
        access_control.require_role(ALICE, "admin")
    err = exc_info.value
    assert err.status_code == 403
    assert err.code == "INSUFFICIENT_ROLE"
    assert err.message == "This endpoint requires admin role. You have user role."
    assert err.details == {"required_role": "admin", "actual_role": "user"}


def test_require_role_is_exact_match():
    with pytest.raises(InsufficientRoleError):
        access_control.require_role(ADMIN, "manager")


def test_require_any_role():
    assert access_control.require_any_role(MANAGER, ["admin", "manager"]) is MANAGER
    assert access_control.require_any_role(ADMIN, ("admin", "manager")) is ADMIN

    with pytest.raises(InsufficientRoleError) as exc_info:
        access_control.require_any_role(ALICE, ["admin", "manager"])
    assert "admin, manager" in exc_info.value.message
    assert "user" in exc_info.value.message


def test_require_owner_or_admin():
    assert access_control.require_owner_or_admin(ALICE, 1) is ALICE
    assert access_control.require_owner_or_admin(ALICE, "1") is ALICE
    assert access_control.require_owner_or_admin(ADMIN, 1) is ADMIN

    with pytest.raises(AuthorizationError) as exc_info:
        access_control.require_owner_or_admin(MANAGER, 1)
    assert exc_info.value.status_code == 403
    assert exc_info.value.code == "NOT_OWNER"
