from types import SimpleNamespace

from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core.rate_limit import RateLimitMiddleware, is_otp_sending_request
from tests.conftest import ProviderError

SIGNUP_FORM = {
    "product_id": "DEMO-001",
    "full_name": "Ramesh Kumar",
    "mobile_number": "7877059117",
    "email": "ramesh@example.com",
    "password": "secret123",
    "confirm_password": "secret123",
}


def start_signup(client, channel="phone"):
    response = client.post("/api/v1/signup", json=SIGNUP_FORM)
    assert response.status_code == 201
    signup_id = response.json()["signup_id"]

    response = client.post(f"/api/v1/signup/{signup_id}/otp", json={"channel": channel})
    assert response.status_code == 200
    return signup_id


def test_health_endpoint(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_signup_form_is_staged_without_exposing_password(client):
    response = client.post("/api/v1/signup", json=SIGNUP_FORM)

    assert response.status_code == 201
    payload = response.json()
    assert payload["state"] == "staged"
    assert payload["mobile_number"] == "+91 78770 59117"
    assert payload["email"] == "ra****@example.com"
    assert "password" not in payload


def test_signup_form_reports_first_violation(client):
    response = client.post("/api/v1/signup", json=dict(SIGNUP_FORM, mobile_number="98765"))

    assert response.status_code == 422
    assert response.json()["detail"] == "Mobile number must be 10 digits"
    assert response.json()["error_code"] == "validation_error"


def test_invalid_product(client):
    response = client.post("/api/v1/signup", json=dict(SIGNUP_FORM, product_id="FAKE-123"))

    assert response.status_code == 400
    assert response.json()["error_code"] == "invalid_product_id"


def test_phone_signup_end_to_end(client, supabase):
    signup_id = start_signup(client)

    response = client.post(f"/api/v1/signup/{signup_id}/verify", json={"token": "123456"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["session"]["state"] == "complete"
    assert payload["profile_complete"] is True
    assert payload["auth"]["access_token"]
    assert supabase.profile(payload["user_id"])["product_id"] == "DEMO-001"

    assert client.get(f"/api/v1/signup/{signup_id}").status_code == 404


def test_signup_completes_when_profile_cannot_be_saved(client, supabase):
    supabase.failures["rpc"] = [RuntimeError("db unavailable")] * 3
    signup_id = start_signup(client, channel="email")

    response = client.post(f"/api/v1/signup/{signup_id}/verify", json={"token": "123456"})

    assert response.status_code == 200
    assert response.json()["profile_complete"] is False


def test_short_code_is_rejected_locally(client, supabase):
    signup_id = start_signup(client)

    response = client.post(f"/api/v1/signup/{signup_id}/verify", json={"token": "123"})

    assert response.status_code == 422
    assert response.json()["error_code"] == "invalid_otp_code"
    assert supabase.auth.calls["verify_otp"] == []


def test_resend_waits_for_countdown(client):
    signup_id = start_signup(client)

    response = client.post(f"/api/v1/signup/{signup_id}/otp/resend")

    assert response.status_code == 429
    assert 0 < int(response.headers["Retry-After"]) <= 60


def test_change_method_and_abandon(client):
    signup_id = start_signup(client)

    response = client.post(f"/api/v1/signup/{signup_id}/method")
    assert response.status_code == 200
    assert response.json()["state"] == "staged"

    response = client.delete(f"/api/v1/signup/{signup_id}")
    assert response.status_code == 200
    assert response.json()["state"] == "form_entry"
    assert client.get(f"/api/v1/signup/{signup_id}").status_code == 404


def test_sms_outage_is_reported(client, supabase):
    supabase.auth.failures["sign_in_with_otp"] = [ProviderError("Error sending sms", code="sms_send_failed")]
    signup_id = client.post("/api/v1/signup", json=SIGNUP_FORM).json()["signup_id"]

    response = client.post(f"/api/v1/signup/{signup_id}/otp", json={"channel": "phone"})

    assert response.status_code == 503
    assert response.json()["error_code"] == "sms_unavailable"


def test_password_login_and_me(client, supabase):
    supabase.auth.passwords["+917877059117"] = "secret123"

    response = client.post("/api/v1/auth/login", json={"email_or_phone": "7877059117", "password": "secret123"})
    assert response.status_code == 200
    token = response.json()["access_token"]

    response = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200
    assert response.json()["has_profile"] is False


def test_login_with_wrong_password(client, supabase):
    supabase.auth.passwords["user@x.com"] = "secret123"

    response = client.post("/api/v1/auth/login", json={"email_or_phone": "user@x.com", "password": "wrong"})

    assert response.status_code == 401
    assert response.json()["error_code"] == "invalid_credentials"


def test_me_requires_valid_token(client):
    response = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer forged"})

    assert response.status_code == 401


def login(client, supabase, identifier, email_or_phone):
    supabase.auth.passwords[identifier] = "secret123"
    response = client.post("/api/v1/auth/login", json={"email_or_phone": email_or_phone, "password": "secret123"})
    assert response.status_code == 200
    return response.json()["access_token"]


def test_logout_revokes_only_the_callers_session(client, supabase):
    token_a = login(client, supabase, "+917877059117", "7877059117")
    token_b = login(client, supabase, "other@x.com", "other@x.com")

    response = client.post("/api/v1/auth/logout", headers={"Authorization": f"Bearer {token_a}"})
    assert response.status_code == 200
    assert supabase.auth.calls["admin_sign_out"] == [token_a]

    assert client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token_a}"}).status_code == 401
    assert client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token_b}"}).status_code == 200


def test_logout_requires_token(client, supabase):
    response = client.post("/api/v1/auth/logout")

    assert response.status_code in (401, 403)
    assert supabase.auth.calls["admin_sign_out"] == []


def test_profile_read_and_update(client, supabase):
    signup_id = start_signup(client)
    payload = client.post(f"/api/v1/signup/{signup_id}/verify", json={"token": "123456"}).json()
    headers = {"Authorization": f"Bearer {payload['auth']['access_token']}"}

    response = client.get("/api/v1/profile", headers=headers)
    assert response.status_code == 200
    assert response.json()["full_name"] == "Ramesh Kumar"

    response = client.patch("/api/v1/profile", headers=headers, json={"phone_number": "9876543210"})
    assert response.status_code == 200
    assert response.json()["phone_number"] == "+919876543210"
    assert response.json()["full_name"] == "Ramesh Kumar"

    response = client.patch("/api/v1/profile", headers=headers, json={"product_id": "FAKE-123"})
    assert response.status_code == 400


def test_product_validation_endpoint(client):
    assert client.get("/api/v1/products/DEMO-001/validate").json()["valid"] is True
    assert client.get("/api/v1/products/RETIRED-001/validate").status_code == 400


def test_otp_sending_paths():
    assert is_otp_sending_request("POST", "/api/v1/signup/abc/otp")
    assert is_otp_sending_request("POST", "/api/v1/signup/abc/otp/resend")
    assert is_otp_sending_request("POST", "/api/v1/auth/otp")
    assert not is_otp_sending_request("POST", "/api/v1/auth/otp/verify")
    assert not is_otp_sending_request("GET", "/api/v1/signup/abc")


def test_otp_requests_have_their_own_limit():
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, requests_per_minute=100, otp_per_minute=2)

    @app.post("/api/v1/auth/otp")
    async def send():
        return {"ok": True}

    client = TestClient(app)
    statuses = [client.post("/api/v1/auth/otp").status_code for _ in range(3)]

    assert statuses == [200, 200, 429]


def test_idle_clients_are_forgotten(monkeypatch):
    clock = [1000.0]
    monkeypatch.setattr("app.core.rate_limit.time", SimpleNamespace(time=lambda: clock[0]))
    limiter = RateLimitMiddleware(FastAPI(), requests_per_minute=5)

    assert limiter._is_rate_limited(limiter._request_counts, "ip:a", 5) is False
    assert limiter._is_rate_limited(limiter._otp_counts, "ip:a", 5) is False
    clock[0] += 61
    assert limiter._is_rate_limited(limiter._request_counts, "ip:b", 5) is False

    assert set(limiter._request_counts) == {"ip:b"}
    assert limiter._otp_counts == {}
