import json
import logging
from datetime import date, timedelta
from urllib.parse import parse_qs, urlparse

import pytest

from rentalhub.core.config import settings
from rentalhub.core.logging import JsonLogFormatter
from rentalhub.core.oauth_state import generate_oauth_state
from rentalhub.middlewares import log_context_ctx_var
from rentalhub.services import oauth

START = date(2025, 9, 1)
END = date(2025, 9, 10)


# ---------- Auth ----------


def test_register_login_me_flow(client):
    res = client.post(
        "/v1/auth/register", json={"email": "Ada@Example.com", "password": "password123", "name": "Ada"}
    )
    assert res.status_code == 201
    body = res.json()
    assert body["status"] == "created"
    assert body["data"]["user"]["email"] == "ada@example.com"
    assert "password_hash" not in body["data"]["user"]

    res = client.post("/v1/auth/login", json={"email": "ada@example.com", "password": "password123"})
    assert res.status_code == 200
    tokens = res.json()["data"]["tokens"]
    assert tokens["token_type"] == "Bearer"

    res = client.get("/v1/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
    assert res.status_code == 200
    assert res.json()["data"]["user"]["name"] == "Ada"

    res = client.post("/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert res.status_code == 200
    assert res.json()["data"]["tokens"]["refresh_token"] == tokens["refresh_token"]


def test_duplicate_registration_conflicts(client, make_user):
    make_user(email="taken@example.com")

    res = client.post(
        "/v1/auth/register", json={"email": "taken@example.com", "password": "password123", "name": "Dup"}
    )

    assert res.status_code == 409
    assert res.json() == {"error": "Conflict", "message": "Email already exists", "statusCode": 409}


def test_bad_login_is_401(client, make_user):
    make_user(email="ada@example.com")

    res = client.post("/v1/auth/login", json={"email": "ada@example.com", "password": "wrong-password"})

    assert res.status_code == 401
    assert res.json()["message"] == "Invalid email or password"


def test_validation_errors_use_envelope(client):
    res = client.post("/v1/auth/register", json={"email": "not-an-email", "password": "short", "name": ""})

    assert res.status_code == 400
    body = res.json()
    assert body["error"] == "ValidationError"
    assert body["statusCode"] == 400


def test_missing_and_malformed_authorization(client):
    res = client.get("/v1/auth/me")
    assert res.status_code == 401
    assert res.json()["message"] == "No authorization header provided"

    res = client.get("/v1/auth/me", headers={"Authorization": "Token abc"})
    assert res.json()["message"] == "Invalid authorization header format"

    res = client.get("/v1/auth/me", headers={"Authorization": "Bearer abc"})
    assert res.json()["message"] == "Invalid token"


def test_logout(client):
    assert client.post("/v1/auth/logout").json() == {"status": "ok", "message": "Logged out successfully"}


def test_invite_accept_over_http(client, make_user, auth_headers):
    admin = make_user("admin")

    res = client.post(
        "/v1/users/invite", json={"email": "new@example.com", "name": "Newbie"}, headers=auth_headers(admin)
    )
    assert res.status_code == 201
    token = res.json()["data"]["inviteToken"]

    res = client.get("/v1/auth/validate-invite", params={"token": token})
    assert res.json()["data"] == {"email": "new@example.com", "name": "Newbie"}

    res = client.post("/v1/auth/accept-invite", json={"token": token, "password": "supersecret"})
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["user"]["email"] == "new@example.com"
    assert data["access_token"]


def test_oauth_start_without_configuration(client, monkeypatch):
    monkeypatch.setattr(settings, "GOOGLE_CLIENT_ID", "")

    res = client.get("/v1/auth/google", follow_redirects=False)

    assert res.status_code == 500
    assert res.json()["error"] == "ConfigurationError"


# ---------- Admin guard ----------


def test_admin_routes_reject_regular_users(client, make_user, auth_headers):
    headers = auth_headers(make_user())

    for method, path in [
        ("get", "/v1/users"),
        ("get", "/v1/admin/categories"),
        ("get", "/v1/admin/inventory"),
        ("post", "/v1/admin/accessory-links"),
    ]:
        res = getattr(client, method)(path, headers=headers)
        assert res.status_code == 403, path
        assert res.json()["message"] == "Insufficient permissions"


def test_admin_user_listing(client, make_user, auth_headers):
    admin = make_user("admin")
    make_user()

    res = client.get("/v1/users", headers=auth_headers(admin))

    assert res.status_code == 200
    assert res.json()["data"]["pagination"] == {"page": 1, "limit": 20, "total": 2, "totalPages": 1}


# ---------- Catalog ----------


def test_public_catalog(client, catalog):
    res = client.get("/v1/catalog/categories")
    assert [c["slug"] for c in res.json()["data"]["categories"]] == ["laptops"]

    res = client.get("/v1/catalog/categories/laptops")
    assert [p["name"] for p in res.json()["data"]["category"]["products"]] == ["Laptop Pro 14"]

    res = client.get(f"/v1/catalog/products/{catalog['product'].id}")
    assert res.status_code == 200
    assert res.json()["data"]["product"]["accessories"] == []

    assert client.get("/v1/catalog/categories/missing").status_code == 404


# ---------- Rentals ----------


def test_calculate_pricing_endpoint(client, catalog, make_user, auth_headers):
    student = make_user(is_student=True)
    accessories = json.dumps([{"accessory_id": catalog["accessory"].id}])

    res = client.get(
        "/v1/rentals/calculate-pricing",
        params={
            "product_template_id": catalog["product"].id,
            "pricing_period": "weekly",
            "start_date": START.isoformat(),
            "end_date": END.isoformat(),
            "accessories": accessories,
            "apply_student_discount": "true",
        },
        headers=auth_headers(student),
    )

    assert res.status_code == 200
    pricing = res.json()["data"]["pricing"]
    assert pricing["subtotal"] == 120.0
    assert pricing["student_discount"] == 18.0
    assert pricing["student_discount_eligible"] is True
    assert pricing["pricing_period"] == "weekly"


def test_calculate_pricing_rejects_bad_accessories(client, catalog, make_user, auth_headers):
    res = client.get(
        "/v1/rentals/calculate-pricing",
        params={
            "product_template_id": catalog["product"].id,
            "pricing_period": "weekly",
            "start_date": START.isoformat(),
            "end_date": END.isoformat(),
            "accessories": "{not json",
        },
        headers=auth_headers(make_user()),
    )

    assert res.status_code == 400
    assert res.json()["error"] == "ValidationError"


def test_enhanced_rental_endpoint(client, catalog, make_item, make_user, auth_headers):
    item = make_item(product=catalog["product"])
    headers = auth_headers(make_user())
    payload = {
        "product_template_id": catalog["product"].id,
        "selected_color": "Silver",
        "pricing_period": "weekly",
        "start_date": START.isoformat(),
        "end_date": END.isoformat(),
    }

    res = client.post("/v1/rentals/enhanced", json=payload, headers=headers)
    assert res.status_code == 201
    rental = res.json()["data"]["rental"]
    assert rental["inventory_item_id"] == item.id
    assert rental["pricing"]["final_total"] == 100.0

    res = client.post("/v1/rentals/enhanced", json=payload, headers=headers)
    assert res.status_code == 409
    assert res.json()["message"] == "No inventory available for the selected product and color"


def test_equipment_rental_conflict_and_cancel(client, make_equipment, make_user, auth_headers):
    camera = make_equipment()
    headers = auth_headers(make_user())
    payload = {"equipment_id": camera.id, "start_date": START.isoformat(), "end_date": END.isoformat()}

    res = client.post("/v1/rentals", json=payload, headers=headers)
    assert res.status_code == 201
    rental_id = res.json()["data"]["rental"]["id"]

    assert client.post("/v1/rentals", json=payload, headers=headers).status_code == 409

    res = client.post(f"/v1/rentals/{rental_id}/cancel", json={"reason": "No longer needed"}, headers=headers)
    assert res.status_code == 200
    assert res.json()["data"]["rental"]["status"] == "cancelled"

    res = client.post(f"/v1/rentals/{rental_id}/cancel", headers=headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Cannot cancel a rental with status 'cancelled'"


def test_rental_dates_must_be_ordered(client, make_equipment, make_user, auth_headers):
    payload = {
        "equipment_id": make_equipment().id,
        "start_date": END.isoformat(),
        "end_date": (END - timedelta(days=1)).isoformat(),
    }

    res = client.post("/v1/rentals", json=payload, headers=auth_headers(make_user()))

    assert res.status_code == 400
    assert res.json()["error"] == "ValidationError"


def test_my_rentals_only_lists_own(client, make_equipment, make_user, auth_headers):
    me, other = make_user(), make_user()
    for user in (me, other):
        client.post(
            "/v1/rentals",
            json={
                "equipment_id": make_equipment().id,
                "start_date": START.isoformat(),
                "end_date": END.isoformat(),
            },
            headers=auth_headers(user),
        )

    res = client.get("/v1/rentals/my", headers=auth_headers(me))

    rentals = res.json()["data"]["rentals"]
    assert [r["user_id"] for r in rentals] == [me.id]


def test_pricing_modifiers_listed(client):
    res = client.get("/v1/pricing-modifiers")

    names = {m["name"] for m in res.json()["data"]["modifiers"]}
    assert {"student_discount", "new_equipment_fee"} <= names


# ---------- Knowledge base ----------


def test_kb_requires_auth_and_admin_writes(client, make_user, auth_headers):
    assert client.get("/v1/kb/categories").status_code == 401

    user_headers = auth_headers(make_user())
    res = client.post("/v1/kb/categories", json={"name": "Guides"}, headers=user_headers)
    assert res.status_code == 403


def test_kb_article_lifecycle(client, make_user, auth_headers):
    admin_headers = auth_headers(make_user("admin"))
    reader_headers = auth_headers(make_user())

    category = client.post("/v1/kb/categories", json={"name": "Guides"}, headers=admin_headers).json()["data"][
        "category"
    ]
    res = client.post(
        "/v1/kb/articles/import",
        json={"category_id": category["id"], "title": "Battery care", "content": "Charge it.", "status": "draft"},
        headers=admin_headers,
    )
    assert res.status_code == 201
    article = res.json()["data"]["article"]

    assert client.get(f"/v1/kb/articles/{article['id']}", headers=reader_headers).status_code == 404

    client.put(f"/v1/kb/articles/{article['id']}", json={"status": "published"}, headers=admin_headers)
    res = client.get("/v1/kb/articles/slug/battery-care", headers=reader_headers)
    assert res.status_code == 200
    assert res.json()["data"]["article"]["published_at"] is not None

    res = client.post(f"/v1/kb/articles/{article['id']}/view", headers=reader_headers)
    assert res.json()["data"] == {"view_count": 1}

    res = client.get("/v1/kb/articles/search", params={"q": "battery"}, headers=reader_headers)
    hits = res.json()["data"]["articles"]
    assert [hit["id"] for hit in hits] == [article["id"]]

    res = client.get("/v1/kb/articles/search", params={"q": "b"}, headers=reader_headers)
    assert res.status_code == 400


def test_request_id_and_security_headers(client):
    res = client.get("/v1/catalog/categories", headers={"X-Request-ID": "req-123"})

    assert res.headers["X-Request-ID"] == "req-123"
    assert res.headers["X-Response-Time"].endswith("ms")
    assert res.headers["X-Content-Type-Options"] == "nosniff"


def test_request_log_carries_caller_and_route_ids(client, make_user, make_equipment, auth_headers, caplog):
    user = make_user()
    camera = make_equipment()

    with caplog.at_level(logging.INFO, logger="rentalhub.request"):
        client.get(f"/v1/equipment/{camera.id}", headers=auth_headers(user))

    (record,) = [r for r in caplog.records if r.getMessage() == "request.completed"]
    assert record.extra_data["route"] == "/v1/equipment/{equipment_id}"
    assert record.extra_data["equipment_id"] == camera.id
    assert record.extra_data["user_id"] == user.id
    assert record.extra_data["role"] == "user"
    assert record.extra_data["status"] == 200


def test_json_formatter_merges_request_context():
    record = logging.LogRecord("rentalhub.rentals", logging.INFO, __file__, 1, "rental.created", None, None)
    record.extra_data = {"rental_id": "r-1"}
    token = log_context_ctx_var.set({"user_id": "u-1", "role": "admin"})
    try:
        line = json.loads(JsonLogFormatter().format(record))
    finally:
        log_context_ctx_var.reset(token)

    assert line["message"] == "rental.created"
    assert (line["rental_id"], line["user_id"], line["role"]) == ("r-1", "u-1", "admin")


# ---------- OAuth callbacks ----------


@pytest.fixture()
def google_provider(monkeypatch):
    """Stand-in for Google: accepts any code and returns Ada's profile."""

    monkeypatch.setattr(settings, "WEB_APP_URL", "https://app.example.com")

    async def _exchange_code(provider, code):
        return oauth.ProviderTokens(access_token=f"{provider}-{code}")

    async def _fetch_profile(provider, access_token):
        return oauth.OAuthProfile(provider_user_id="g-1", email="ada@example.com", name="Ada")

    monkeypatch.setattr(oauth, "exchange_code", _exchange_code)
    monkeypatch.setattr(oauth, "fetch_profile", _fetch_profile)


def _login_error(res):
    assert res.status_code == 302
    location = urlparse(res.headers["location"])
    assert location.path == "/login"
    return parse_qs(location.query)["error"][0]


def test_oauth_callback_signs_in(client, google_provider):
    res = client.get(
        "/v1/auth/google/callback", params={"code": "c1", "state": generate_oauth_state()}, follow_redirects=False
    )

    assert res.status_code == 302
    location = urlparse(res.headers["location"])
    assert location.netloc == "app.example.com"
    assert location.path == "/auth/callback"
    params = parse_qs(location.query)
    assert params["is_new_user"] == ["true"]
    me = client.get("/v1/auth/me", headers={"Authorization": f"Bearer {params['access_token'][0]}"})
    assert me.json()["data"]["user"]["email"] == "ada@example.com"


def test_oauth_callback_failures_redirect_to_login(client, google_provider, monkeypatch):
    def callback(**params):
        return client.get("/v1/auth/google/callback", params=params, follow_redirects=False)

    assert _login_error(callback(code="c1", state="forged")) == "OAuthStateInvalid"
    assert _login_error(callback(state=generate_oauth_state())) == "OAuthCodeInvalid"
    assert _login_error(callback(error="access_denied")) == "access_denied"

    async def _provider_down(provider, code):
        raise oauth.OAuthError("Failed to exchange authorization code")

    monkeypatch.setattr(oauth, "exchange_code", _provider_down)
    assert _login_error(callback(code="c1", state=generate_oauth_state())) == "OAuthProviderError"


def test_oauth_callback_requires_verified_email(client, google_provider, make_user):
    make_user(email="ada@example.com")

    res = client.get(
        "/v1/auth/google/callback", params={"code": "c1", "state": generate_oauth_state()}, follow_redirects=False
    )

    assert _login_error(res) == "EmailVerificationRequired"


def test_oauth_exchange(client, google_provider, make_user):
    res = client.post("/v1/auth/github/exchange", json={"code": "c1", "state": "forged"})
    assert res.status_code == 400
    assert res.json()["error"] == "OAuthStateInvalid"

    res = client.post("/v1/auth/github/exchange", json={"state": generate_oauth_state()})
    assert res.status_code == 400
    assert res.json()["error"] == "OAuthCodeInvalid"

    res = client.post("/v1/auth/github/exchange", json={"code": "c1", "state": generate_oauth_state()})
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["is_new_user"] is True
    assert data["access_token"]

    again = client.post("/v1/auth/google/exchange", json={"code": "c2", "state": generate_oauth_state()})
    assert again.json()["data"]["is_new_user"] is False


def test_oauth_exchange_requires_verified_email(client, google_provider, make_user):
    make_user(email="ada@example.com")

    res = client.post("/v1/auth/google/exchange", json={"code": "c1", "state": generate_oauth_state()})

    assert res.status_code == 403
    assert res.json()["error"] == "EmailVerificationRequired"
