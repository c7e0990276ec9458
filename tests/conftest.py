import os
from collections import defaultdict
from types import SimpleNamespace
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from redis.exceptions import WatchError

# Settings are read on first import of the app, so set them up front.
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_PUBLISHABLE_KEY", "test-publishable-key")
os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "10000")
os.environ.setdefault("OTP_RATE_LIMIT_PER_MINUTE", "10000")
os.environ.setdefault("OTP_RETRY_BASE_DELAY_SECONDS", "0")
os.environ.setdefault("PROFILE_RECONCILE_DELAY_SECONDS", "0")

from app.core.app import create_app  # noqa: E402  (import after env vars are set)
from app.core.database import get_supabase_admin_client, get_supabase_auth_client, get_supabase_client  # noqa: E402
from app.core.redis_client import get_redis_client  # noqa: E402
from app.api.v1.dependencies import get_staging_store  # noqa: E402
from app.services.profile_service import merge_profile_fields  # noqa: E402
from app.services.staging_store import SignupStagingStore  # noqa: E402

ACTIVE_PRODUCTS = [
    {"id": "AGRICURE-001", "name": "AgriCure Smart Sensor Kit", "is_active": True},
    {"id": "DEMO-001", "name": "Demo Product", "is_active": True},
    {"id": "RETIRED-001", "name": "Retired Kit", "is_active": False},
]

PROFILE_COLUMNS = ("full_name", "email", "phone_number", "product_id")


class ProviderError(Exception):
    """Shaped like supabase_auth's AuthApiError: message plus optional code"""

    def __init__(self, message, code=None):
        super().__init__(message)
        self.message = message
        self.code = code


class PostgrestError(Exception):
    def __init__(self, message, code=None):
        super().__init__(message)
        self.message = message
        self.code = code


def auth_response(user_id, email=None, phone=None, with_session=True):
    user = SimpleNamespace(
        id=user_id,
        email=email,
        phone=phone,
        created_at="2025-09-09T10:00:00+00:00",
        user_metadata={},
    )
    session = None
    if with_session:
        session = SimpleNamespace(
            access_token=f"access-{user_id}",
            refresh_token=f"refresh-{user_id}",
            expires_in=3600,
            expires_at=1757412000,
        )
    return SimpleNamespace(user=user, session=session)


class FakeAdminAuth:
    def __init__(self, owner):
        self.owner = owner

    def update_user_by_id(self, user_id, attributes):
        self.owner.calls["update_user_by_id"].append((user_id, attributes))
        self.owner.raise_scripted("update_user_by_id")
        return SimpleNamespace(user=SimpleNamespace(id=user_id))

    def sign_out(self, jwt, scope="global"):
        self.owner.calls["admin_sign_out"].append(jwt)
        self.owner.raise_scripted("admin_sign_out")
        self.owner.tokens.pop(jwt, None)


class FakeAuth:
    """
    In-memory stand-in for supabase.auth.

    `failures[method]` is a list of exceptions raised by successive calls;
    once it is empty the call succeeds.
    """

    def __init__(self):
        self.calls = defaultdict(list)
        self.failures = defaultdict(list)
        self.users = {}
        self.passwords = {}
        self.tokens = {}
        self.admin = FakeAdminAuth(self)

    def raise_scripted(self, method):
        if self.failures[method]:
            raise self.failures[method].pop(0)

    def _user_id(self, identifier):
        return self.users.setdefault(identifier, str(uuid4()))

    def _issue(self, identifier, email=None, phone=None):
        user_id = self._user_id(identifier)
        response = auth_response(user_id, email=email, phone=phone)
        self.tokens[response.session.access_token] = response.user
        return response

    def sign_in_with_otp(self, credentials):
        self.calls["sign_in_with_otp"].append(credentials)
        self.raise_scripted("sign_in_with_otp")
        return SimpleNamespace(user=None, session=None)

    def verify_otp(self, params):
        self.calls["verify_otp"].append(params)
        self.raise_scripted("verify_otp")
        identifier = params.get("email") or params.get("phone")
        return self._issue(identifier, email=params.get("email"), phone=params.get("phone"))

    def sign_in_with_password(self, credentials):
        self.calls["sign_in_with_password"].append(credentials)
        self.raise_scripted("sign_in_with_password")
        identifier = credentials.get("email") or credentials.get("phone")
        if self.passwords.get(identifier) != credentials["password"]:
            raise ProviderError("Invalid login credentials", code="invalid_credentials")
        return self._issue(identifier, email=credentials.get("email"), phone=credentials.get("phone"))

    def sign_up(self, payload):
        self.calls["sign_up"].append(payload)
        self.raise_scripted("sign_up")
        self.passwords[payload["email"]] = payload["password"]
        user_id = self._user_id(payload["email"])
        return auth_response(user_id, email=payload["email"], with_session=False)

    def get_user(self, token):
        self.calls["get_user"].append(token)
        user = self.tokens.get(token)
        if user is None:
            raise ProviderError("invalid JWT", code="bad_jwt")
        return SimpleNamespace(user=user)

    def refresh_session(self, refresh_token):
        self.calls["refresh_session"].append(refresh_token)
        self.raise_scripted("refresh_session")
        for user in self.tokens.values():
            if f"refresh-{user.id}" == refresh_token:
                return auth_response(user.id, email=user.email, phone=user.phone)
        raise ProviderError("Invalid Refresh Token", code="refresh_token_not_found")


class FakeQuery:
    def __init__(self, rows):
        self.rows = rows
        self.filters = []
        self.updates = None
        self.max_rows = None

    def select(self, *args, **kwargs):
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def limit(self, count):
        self.max_rows = count
        return self

    def update(self, data):
        self.updates = data
        return self

    def execute(self):
        matched = [row for row in self.rows if all(row.get(c) == v for c, v in self.filters)]
        if self.updates is not None:
            for row in matched:
                row.update(self.updates)
        if self.max_rows is not None:
            matched = matched[:self.max_rows]
        return SimpleNamespace(data=[dict(row) for row in matched])


class FakeRPC:
    def __init__(self, client, name, params):
        self.client = client
        self.name = name
        self.params = params

    def execute(self):
        self.client.raise_scripted("rpc")
        assert self.name == "upsert_user_profile"
        return SimpleNamespace(data=[self.client.upsert_profile(self.params)])


class FakeSupabase:
    """Enough of supabase.Client for the repositories and services"""

    def __init__(self):
        self.auth = FakeAuth()
        self.tables = {
            "products": [dict(p) for p in ACTIVE_PRODUCTS],
            "user_profiles": [],
        }
        self.rpc_calls = []
        self.failures = defaultdict(list)

    def raise_scripted(self, method):
        if self.failures[method]:
            raise self.failures[method].pop(0)

    def table(self, name):
        self.raise_scripted("table")
        return FakeQuery(self.tables.setdefault(name, []))

    def from_(self, name):
        return self.table(name)

    def rpc(self, name, params):
        self.rpc_calls.append((name, params))
        return FakeRPC(self, name, params)

    def profile(self, user_id):
        for row in self.tables["user_profiles"]:
            if row["id"] == user_id:
                return row
        return None

    def upsert_profile(self, params):
        """Same merge rule as the upsert_user_profile SQL function"""
        user_id = params["p_id"]
        incoming = {name: params.get(f"p_{name}") for name in PROFILE_COLUMNS}

        phone = incoming["phone_number"]
        if phone and any(
            row["phone_number"] == phone and row["id"] != user_id
            for row in self.tables["user_profiles"]
        ):
            raise PostgrestError(
                'duplicate key value violates unique constraint "user_profiles_phone_number_key"',
                code="23505",
            )

        row = self.profile(user_id)
        if row is None:
            row = {"id": user_id, "full_name": "", "email": None, "phone_number": None, "product_id": None}
            self.tables["user_profiles"].append(row)
        row.update(merge_profile_fields(row, incoming))
        return dict(row)


class FakePipeline:
    """WATCH/MULTI/EXEC the way redis.asyncio's transactional pipeline behaves"""

    def __init__(self, client):
        self.client = client
        self.watched = {}
        self.queued = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.watched = {}
        self.queued = []

    async def watch(self, *keys):
        for key in keys:
            self.watched[key] = self.client.versions[key]

    async def get(self, key):
        value = self.client.data.get(key)
        if self.client.after_watched_read:
            self.client.after_watched_read(key)
        return value

    def multi(self):
        self.queued = []

    def set(self, key, value, ex=None):
        self.queued.append((key, value, ex))
        return self

    async def execute(self):
        if any(self.client.versions[key] != version for key, version in self.watched.items()):
            raise WatchError("Watched variable changed.")
        return [self.client.write(key, value, ex) for key, value, ex in self.queued]


class FakeRedis:
    """
    In-memory stand-in for redis.asyncio.Redis with string keys.

    `after_watched_read(key)` runs right after a pipeline reads a watched key,
    which is where another worker's write would land.
    """

    def __init__(self):
        self.data = {}
        self.expiry = {}
        self.versions = defaultdict(int)
        self.after_watched_read = None

    def write(self, key, value, ex=None):
        self.data[key] = value
        self.expiry[key] = ex
        self.versions[key] += 1
        return True

    def drop(self, key):
        removed = self.data.pop(key, None) is not None
        self.expiry.pop(key, None)
        self.versions[key] += 1
        return removed

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        return self.write(key, value, ex)

    async def delete(self, *keys):
        return sum(self.drop(key) for key in keys)

    async def ping(self):
        return True

    def pipeline(self, transaction=True):
        return FakePipeline(self)


class SleepRecorder:
    """Async sleep replacement that records requested delays"""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.fixture()
def supabase():
    return FakeSupabase()


@pytest.fixture()
def sleeper():
    return SleepRecorder()


@pytest.fixture()
def redis_client():
    return FakeRedis()


@pytest.fixture()
def staging_store(redis_client):
    return SignupStagingStore(redis_client)


@pytest.fixture()
def app(supabase, redis_client, staging_store):
    application = create_app()
    application.dependency_overrides[get_supabase_client] = lambda: supabase
    application.dependency_overrides[get_supabase_auth_client] = lambda: supabase
    application.dependency_overrides[get_supabase_admin_client] = lambda: supabase
    application.dependency_overrides[get_redis_client] = lambda: redis_client
    application.dependency_overrides[get_staging_store] = lambda: staging_store
    yield application
    application.dependency_overrides.clear()


@pytest.fixture()
def client(app):
    """TestClient without lifespan, so nothing connects to a real Redis"""
    return TestClient(app)
