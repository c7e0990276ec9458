import json
from datetime import timedelta

from app.domain.enums import SignupState
from app.domain.models import SignupSession, TempUserData
from app.services.staging_store import SignupStagingStore, staging_key


def staged_session(**overrides):
    staged = TempUserData(
        product_id="DEMO-001",
        full_name="Ramesh Kumar",
        mobile_number="+917877059117",
        email="ramesh@example.com",
        password="secret123",
    )
    return SignupSession(state=SignupState.STAGED, staged=staged, **overrides)


async def test_record_is_stored_under_well_known_key_with_expiry(redis_client):
    store = SignupStagingStore(redis_client, ttl=timedelta(minutes=30))
    session = staged_session()

    await store.save(session)

    key = f"tempUserData:{session.signup_id}"
    assert staging_key(session.signup_id) == key
    assert json.loads(redis_client.data[key])["staged"]["email"] == "ramesh@example.com"
    assert redis_client.expiry[key] == 1800
    assert await store.load(session.signup_id) == session


async def test_missing_record(staging_store):
    assert await staging_store.load("does-not-exist") is None
    await staging_store.delete("does-not-exist")


async def test_unreadable_record_is_discarded(staging_store, redis_client):
    session = await staging_store.save(staged_session())
    redis_client.data[staging_key(session.signup_id)] = "{not json"

    assert await staging_store.load(session.signup_id) is None
    assert staging_key(session.signup_id) not in redis_client.data


async def test_conditional_write_when_generation_matches(staging_store):
    session = await staging_store.save(staged_session())
    moved = session.advance(SignupState.OTP_PENDING)

    assert await staging_store.save_if_current(moved, session.generation) is True
    assert await staging_store.load(session.signup_id) == moved


async def test_conditional_write_refuses_stale_generation(staging_store):
    session = await staging_store.save(staged_session())
    newer = await staging_store.save(session.advance(SignupState.OTP_PENDING))

    assert await staging_store.save_if_current(session.advance(SignupState.OTP_PENDING), session.generation) is False
    assert await staging_store.load(session.signup_id) == newer


async def test_conditional_write_never_recreates_deleted_record(staging_store):
    session = await staging_store.save(staged_session())
    await staging_store.delete(session.signup_id)

    assert await staging_store.save_if_current(session.advance(SignupState.OTP_PENDING), session.generation) is False
    assert await staging_store.load(session.signup_id) is None


async def test_delete_between_read_and_write_is_not_undone(staging_store, redis_client):
    session = await staging_store.save(staged_session())
    redis_client.after_watched_read = redis_client.drop

    written = await staging_store.save_if_current(session.advance(SignupState.OTP_PENDING), session.generation)

    assert written is False
    assert staging_key(session.signup_id) not in redis_client.data
