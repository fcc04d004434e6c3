import threading
from datetime import timedelta

import pytest

from authgate.core.database import SessionLocal
from authgate.core.exceptions import ReuseDetectedError
from authgate.core.security import create_refresh_token, generate_jti, utc_now
from authgate.models.security import RefreshToken
from authgate.services.token_registry import token_registry
from authgate.services.token_service import token_service
from authgate.services.token_verifier import TokenErrorKind, verify_refresh_token


def _issue(db, user):
    return token_service.generate_refresh_token(db, user)


def test_issued_refresh_token_is_registered_and_live(db, make_user):
    user = make_user()
    token, jti = _issue(db, user)

    record = token_registry.get(db, jti)
    assert record is not None
    assert record.user_id == user.id
    assert record.revoked is False
    assert record.replaced_by_jti is None

    result = verify_refresh_token(db, token)
    assert result.ok
    assert result.claims.jti == jti


def test_unregistered_refresh_token_is_unknown(db, make_user):
    user = make_user()
    token = create_refresh_token(user.id, generate_jti())
    assert verify_refresh_token(db, token).error is TokenErrorKind.UNKNOWN


def test_registered_jti_for_other_subject_is_unknown(db, make_user):
    alice = make_user()
    bob = make_user(email="bob@example.com")
    _, jti = _issue(db, alice)
    forged = create_refresh_token(bob.id, jti)
    assert verify_refresh_token(db, forged).error is TokenErrorKind.UNKNOWN


def test_revoke_is_idempotent(db, make_user):
    user = make_user()
    token, jti = _issue(db, user)

    assert token_registry.revoke(db, jti) is True
    assert token_registry.revoke(db, jti) is False
    assert token_registry.revoke(db, "never-issued-jti-0000") is False

    result = verify_refresh_token(db, token)
    assert result.error is TokenErrorKind.REVOKED
    assert result.claims.sub == str(user.id)


def test_rotate_consumes_old_token(db, make_user):
    user = make_user()
    old_token, old_jti = _issue(db, user)

    new_token, new_jti = token_registry.rotate(db, old_jti, user.id)

    assert new_jti != old_jti
    assert verify_refresh_token(db, new_token).ok
    old_record = token_registry.get(db, old_jti)
    assert old_record.revoked is True
    assert old_record.replaced_by_jti == new_jti
    assert verify_refresh_token(db, old_token).error is TokenErrorKind.REUSE_DETECTED


def test_rotate_twice_raises_reuse(db, make_user):
    user = make_user()
    _, jti = _issue(db, user)
    token_registry.rotate(db, jti, user.id)

    with pytest.raises(ReuseDetectedError) as exc_info:
        token_registry.rotate(db, jti, user.id)
    assert exc_info.value.code == "TOKEN_REUSE_DETECTED"
    assert db.query(RefreshToken).filter(RefreshToken.user_id == user.id).count() == 2


def test_rotate_revoked_or_foreign_token_raises_reuse(db, make_user):
    alice = make_user()
    bob = make_user(email="bob@example.com")
    _, revoked_jti = _issue(db, alice)
    token_registry.revoke(db, revoked_jti)
    _, live_jti = _issue(db, alice)

    with pytest.raises(ReuseDetectedError):
        token_registry.rotate(db, revoked_jti, alice.id)
    with pytest.raises(ReuseDetectedError):
        token_registry.rotate(db, live_jti, bob.id)
    assert token_registry.get(db, live_jti).revoked is False


def test_concurrent_rotation_has_single_winner(db, make_user):
    user = make_user()
    _, jti = _issue(db, user)

    workers = 4
    barrier = threading.Barrier(workers)
    outcomes = []
    lock = threading.Lock()

    def attempt():
        session = SessionLocal()
        try:
            barrier.wait()
            try:
                token_registry.rotate(session, jti, user.id)
                outcome = "rotated"
            except ReuseDetectedError:
                outcome = "reuse"
        finally:
            session.close()
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=attempt) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert sorted(outcomes) == ["reuse"] * (workers - 1) + ["rotated"]
    db.expire_all()
    live = db.query(RefreshToken).filter(
        RefreshToken.user_id == user.id, RefreshToken.revoked == False  # noqa: E712
    ).count()
    assert live == 1


def test_revoke_all_for_subject(db, make_user):
    alice = make_user()
    bob = make_user(email="bob@example.com")
    alice_tokens = [_issue(db, alice)[0] for _ in range(3)]
    bob_token, _ = _issue(db, bob)

    assert token_registry.revoke_all_for_subject(db, alice.id) == 3
    assert token_registry.revoke_all_for_subject(db, alice.id) == 0

    for token in alice_tokens:
        assert verify_refresh_token(db, token).error is TokenErrorKind.REVOKED
    assert verify_refresh_token(db, bob_token).ok


def test_purge_expired(db, make_user):
    user = make_user()
    _, live_jti = _issue(db, user)
    stale_jti = generate_jti()
    token_registry.create(db, stale_jti, user.id, expires_at=utc_now() - timedelta(days=1))
    db.commit()

    assert token_registry.purge_expired(db) == 1
    assert token_registry.get(db, stale_jti) is None
    assert token_registry.get(db, live_jti) is not None
