import base64
import json
from datetime import timedelta

import pytest
from jose import jwt

from authgate.config import settings
from authgate.core.exceptions import (
    InvalidSignatureError,
    TokenExpiredError,
    TokenInvalidError,
    WrongTokenTypeError,
)
from authgate.core.security import (
    create_access_token,
    create_refresh_token,
    generate_jti,
    get_password_hash,
    utc_now,
    verify_password,
)
from authgate.schemas.token import Identity
from authgate.services.token_verifier import TokenErrorKind, verify_access_token

ALICE = Identity(id=7, email="alice@example.com", role="user", name="Alice")


def _claims(**overrides):
    claims = jwt.get_unverified_claims(create_access_token(ALICE))
    claims.update(overrides)
    return claims


def _b64(data: dict) -> str:
    raw = json.dumps(data, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def test_access_token_round_trip():
    result = verify_access_token(create_access_token(ALICE))
    assert result.ok
    claims = result.unwrap()
    assert claims.sub == "7"
    assert claims.type == "access"
    assert claims.iss == settings.JWT_ISSUER
    assert claims.aud == settings.JWT_AUDIENCE
    assert claims.to_identity() == ALICE


def test_access_token_carries_identity_only():
    payload = jwt.get_unverified_claims(create_access_token(ALICE))
    assert set(payload) == {"sub", "email", "role", "name", "type", "iss", "aud", "iat", "exp"}
    assert payload["exp"] - payload["iat"] == settings.access_token_ttl_seconds


def test_refresh_token_contains_jti_and_no_identity():
    jti = generate_jti()
    payload = jwt.get_unverified_claims(create_refresh_token(7, jti))
    assert payload["jti"] == jti
    assert payload["type"] == "refresh"
    assert "email" not in payload and "role" not in payload


def test_refresh_token_rejected_as_access_token():
    result = verify_access_token(create_refresh_token(7, generate_jti()))
    assert result.error is TokenErrorKind.INVALID_SIGNATURE
    with pytest.raises(InvalidSignatureError):
        result.unwrap()


def test_wrong_type_with_access_secret():
    token = jwt.encode(_claims(type="refresh"), settings.ACCESS_TOKEN_SECRET, algorithm="HS256")
    result = verify_access_token(token)
    assert result.error is TokenErrorKind.WRONG_TYPE
    with pytest.raises(WrongTokenTypeError) as exc_info:
        result.unwrap()
    assert exc_info.value.status_code == 403
    assert exc_info.value.code == "WRONG_TOKEN_TYPE"


def test_expired_access_token():
    token = create_access_token(ALICE, now=utc_now() - timedelta(hours=1))
    result = verify_access_token(token)
    assert result.error is TokenErrorKind.EXPIRED
    with pytest.raises(TokenExpiredError) as exc_info:
        result.unwrap()
    assert exc_info.value.status_code == 401
    assert exc_info.value.code == "TOKEN_EXPIRED"


def test_token_signed_with_other_secret():
    token = jwt.encode(_claims(), "some-other-secret-0123456789abcdef", algorithm="HS256")
    assert verify_access_token(token).error is TokenErrorKind.INVALID_SIGNATURE


def test_tampered_signature():
    token = create_access_token(ALICE)
    head, payload, signature = token.split(".")
    flipped = ("A" if signature[0] != "A" else "B") + signature[1:]
    assert verify_access_token(f"{head}.{payload}.{flipped}").error is TokenErrorKind.INVALID_SIGNATURE


def test_tampered_payload():
    token = create_access_token(ALICE)
    head, _, signature = token.split(".")
    forged = _b64(_claims(role="admin"))
    assert verify_access_token(f"{head}.{forged}.{signature}").error is TokenErrorKind.INVALID_SIGNATURE


def test_alg_none_rejected():
    token = f"{_b64({'alg': 'none', 'typ': 'JWT'})}.{_b64(_claims(role='admin'))}."
    assert verify_access_token(token).error is TokenErrorKind.INVALID_SIGNATURE


def test_other_hmac_algorithm_rejected():
    token = jwt.encode(_claims(), settings.ACCESS_TOKEN_SECRET, algorithm="HS512")
    assert verify_access_token(token).error is TokenErrorKind.INVALID_SIGNATURE


@pytest.mark.parametrize("field,value", [("aud", "someone-else"), ("iss", "someone-else")])
def test_audience_and_issuer_must_match(field, value):
    token = jwt.encode(_claims(**{field: value}), settings.ACCESS_TOKEN_SECRET, algorithm="HS256")
    result = verify_access_token(token)
    assert result.error is TokenErrorKind.INVALID_CLAIMS
    with pytest.raises(TokenInvalidError):
        result.unwrap()


def test_unknown_claim_rejected():
    token = jwt.encode(_claims(is_admin=True), settings.ACCESS_TOKEN_SECRET, algorithm="HS256")
    result = verify_access_token(token)
    assert result.error is TokenErrorKind.MALFORMED
    with pytest.raises(TokenInvalidError) as exc_info:
        result.unwrap()
    assert exc_info.value.code == "INVALID_TOKEN"


def test_missing_claim_rejected():
    claims = _claims()
    del claims["email"]
    token = jwt.encode(claims, settings.ACCESS_TOKEN_SECRET, algorithm="HS256")
    assert verify_access_token(token).error is TokenErrorKind.MALFORMED


@pytest.mark.parametrize("token", ["", "garbage", "not.a.jwt", "a.b"])
def test_garbage_is_malformed(token):
    assert verify_access_token(token).error is TokenErrorKind.MALFORMED


def test_password_hashing():
    hashed = get_password_hash("s3cret-password")
    assert hashed != "s3cret-password"
    assert verify_password("s3cret-password", hashed)
    assert not verify_password("wrong-password", hashed)
    assert not verify_password("s3cret-password", "not-a-bcrypt-hash")
