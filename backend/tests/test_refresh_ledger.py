import threading
from datetime import datetime, timedelta, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from jobboard.core.database import Base, as_utc, utcnow
from jobboard.core.security import generate_refresh_secret, hash_token
from jobboard.models.security import RefreshToken, RefreshTokenState
from jobboard.services.token_service import RefreshTokenLedger, RotationFailure
from jobboard.services.user_service import user_service

from conftest import PASSWORD


def _record(db, secret):
    return db.query(RefreshToken).filter(RefreshToken.token_hash == hash_token(secret)).one()


def _live_tokens(db, user_id):
    return db.query(RefreshToken).filter(RefreshToken.user_id == user_id, RefreshToken.revoked == False).count()  # noqa: E712


def test_store_persists_only_the_hash(db, ledger, make_user):
    user = make_user()
    secret = generate_refresh_secret()
    ledger.store(db, secret, user.id, utcnow() + timedelta(days=1))

    record = db.query(RefreshToken).one()
    assert record.token_hash == hash_token(secret)
    stored_values = [getattr(record, column.name) for column in RefreshToken.__table__.columns]
    assert secret not in stored_values
    assert record.state_at(utcnow()) is RefreshTokenState.ACTIVE


def test_rotate_consumes_token_once(db, ledger, make_user):
    user = make_user()
    secret, _ = ledger.issue(db, user.id)

    result = ledger.rotate(db, secret)

    assert result.ok
    assert result.user_id == user.id
    assert result.secret and result.secret != secret

    old = _record(db, secret)
    new = _record(db, result.secret)
    assert old.revoked is True
    assert old.replaced_by_id == new.id
    assert old.state_at(utcnow()) is RefreshTokenState.ROTATED
    assert new.state_at(utcnow()) is RefreshTokenState.ACTIVE


def test_replay_revokes_every_token_of_the_owner(db, ledger, make_user):
    user = make_user()
    other = make_user(email="grace@talent.io")
    first, _ = ledger.issue(db, user.id)
    second_device, _ = ledger.issue(db, user.id)
    unrelated, _ = ledger.issue(db, other.id)

    rotated = ledger.rotate(db, first)
    assert rotated.ok

    replay = ledger.rotate(db, first)

    assert not replay.ok
    assert replay.reason is RotationFailure.REPLAYED
    assert _live_tokens(db, user.id) == 0
    assert _record(db, second_device).state_at(utcnow()) is RefreshTokenState.REVOKED
    assert _record(db, rotated.secret).revoked is True
    assert _live_tokens(db, other.id) == 1
    assert not ledger.rotate(db, rotated.secret).ok


def test_revoked_token_counts_as_replay(db, ledger, make_user):
    user = make_user()
    logged_out, _ = ledger.issue(db, user.id)
    other_session, _ = ledger.issue(db, user.id)
    ledger.revoke(db, logged_out)

    result = ledger.rotate(db, logged_out)

    assert result.reason is RotationFailure.REPLAYED
    assert _record(db, other_session).revoked is True


def test_unknown_token_fails_without_mutation(db, ledger, make_user):
    user = make_user()
    ledger.issue(db, user.id)

    result = ledger.rotate(db, generate_refresh_secret())

    assert not result.ok
    assert result.reason is RotationFailure.INVALID
    assert result.user_id is None
    assert _live_tokens(db, user.id) == 1
    assert db.query(RefreshToken).count() == 1


def test_empty_token_is_invalid(db, ledger):
    assert ledger.rotate(db, "").reason is RotationFailure.INVALID


def test_expired_token_is_never_rotatable(db, ledger, make_user):
    user = make_user()
    secret = generate_refresh_secret()
    ledger.store(db, secret, user.id, utcnow() - timedelta(milliseconds=1))

    result = ledger.rotate(db, secret)

    assert not result.ok
    assert result.reason is RotationFailure.EXPIRED
    record = _record(db, secret)
    assert record.revoked is True
    assert record.replaced_by_id is None
    assert db.query(RefreshToken).count() == 1


def test_expiry_is_evaluated_against_the_given_clock(db, ledger, make_user):
    user = make_user()
    now = utcnow()
    secret, _ = ledger.issue(db, user.id, now=now)

    later = now + ledger.ttl + timedelta(seconds=1)
    assert ledger.rotate(db, secret, now=later).reason is RotationFailure.EXPIRED


def test_successor_gets_a_full_ttl(db, ledger, make_user):
    user = make_user()
    now = utcnow()
    secret, _ = ledger.issue(db, user.id, now=now)

    result = ledger.rotate(db, secret, now=now + timedelta(hours=1))

    assert result.expires_at == now + timedelta(hours=1) + ledger.ttl


def test_revoke_is_idempotent(db, ledger, make_user):
    user = make_user()
    secret, _ = ledger.issue(db, user.id)

    assert ledger.revoke(db, secret) is True
    assert ledger.revoke(db, secret) is True
    assert ledger.revoke(db, generate_refresh_secret()) is True
    assert ledger.revoke(db, None) is True
    assert _record(db, secret).state_at(utcnow()) is RefreshTokenState.REVOKED


def test_revoke_all_only_touches_live_tokens_of_the_user(db, ledger, make_user):
    user = make_user()
    other = make_user(email="grace@talent.io")
    for _ in range(3):
        ledger.issue(db, user.id)
    already_revoked, _ = ledger.issue(db, user.id)
    ledger.revoke(db, already_revoked)
    ledger.issue(db, other.id)

    assert ledger.revoke_all(db, user.id) == 3
    assert _live_tokens(db, user.id) == 0
    assert _live_tokens(db, other.id) == 1


def test_timestamps_are_aware_utc(db, ledger, make_user):
    user = make_user()
    _, record = ledger.issue(db, user.id)

    assert utcnow().tzinfo is timezone.utc
    assert as_utc(record.expires_at).tzinfo is timezone.utc
    shifted = datetime(2026, 1, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
    assert as_utc(shifted) == datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
    assert as_utc(datetime(2026, 1, 1, 12, 0)) == datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def test_concurrent_rotations_of_one_token_let_only_one_through(tmp_path, monkeypatch):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False, "timeout": 10},
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    ledger = RefreshTokenLedger()

    setup = Session()
    user = user_service.create_user(
        setup,
        email="ada@talent.io",
        password=PASSWORD,
        role="TALENT",
        profile_data={"first_name": "Ada", "last_name": "Lovelace"},
        is_email_verified=True,
    )
    user_id = user.id
    secret, _ = ledger.issue(setup, user_id)
    setup.close()

    # Both requests read the token as active before either claims it.
    barrier = threading.Barrier(2, timeout=10)
    find = RefreshTokenLedger._find

    def find_then_wait(db, presented, *, lock=False):
        record = find(db, presented, lock=lock)
        barrier.wait()
        return record

    monkeypatch.setattr(RefreshTokenLedger, "_find", staticmethod(find_then_wait))

    results, errors = [], []

    def refresh():
        session = Session()
        try:
            results.append(ledger.rotate(session, secret))
        except Exception as exc:  # surfaced by the assertion below
            errors.append(exc)
        finally:
            session.close()

    threads = [threading.Thread(target=refresh) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert errors == []
    assert sorted(result.ok for result in results) == [False, True]
    loser = next(result for result in results if not result.ok)
    assert loser.reason is RotationFailure.REPLAYED

    check = Session()
    try:
        assert _live_tokens(check, user_id) == 0
    finally:
        check.close()
        engine.dispose()
