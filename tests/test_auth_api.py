from datetime import timedelta

from condohub.config import LOGIN_RATE_LIMIT
from condohub.rate_limiter import check_rate_limit
from condohub.security_utils import create_access_token, generate_timed_token, verify_timed_token

from conftest import auth_headers, make_user


def test_register_returns_token(client):
    response = client.post(
        "/auth/register",
        json={"name": " Maria ", "email": "Maria@Example.com", "password": "Secret123!", "phone": "+351 912 345 678"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["email"] == "maria@example.com"
    assert body["user"]["name"] == "Maria"
    assert body["user"]["phone"] == "912345678"
    assert body["user"]["role"] == "admin"


def test_register_duplicate_email(client, admin):
    response = client.post(
        "/auth/register", json={"name": "Again", "email": "admin@example.com", "password": "Secret123!"}
    )
    assert response.status_code == 409


def test_register_validation(client):
    assert client.post("/auth/register", json={"name": "X", "email": "nope", "password": "Secret123!"}).status_code == 422
    assert client.post("/auth/register", json={"name": "X", "email": "x@y.pt", "password": "short"}).status_code == 422
    assert (
        client.post(
            "/auth/register", json={"name": "X", "email": "x@y.pt", "password": "Secret123!", "nif": "123456780"}
        ).status_code
        == 422
    )


def test_login(client, admin):
    response = client.post("/auth/login", json={"email": "ADMIN@example.com", "password": "Secret123!"})
    assert response.status_code == 200
    token = response.json()["access_token"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["id"] == admin.id


def test_login_wrong_password(client, admin):
    response = client.post("/auth/login", json={"email": "admin@example.com", "password": "wrong-password"})
    assert response.status_code == 401


def test_login_disabled_account(client, db, admin):
    admin.is_active = False
    db.commit()
    response = client.post("/auth/login", json={"email": "admin@example.com", "password": "Secret123!"})
    assert response.status_code == 403


def test_login_is_rate_limited_per_ip(client):
    payload = {"email": "ghost@example.com", "password": "whatever"}
    for _ in range(LOGIN_RATE_LIMIT):
        assert client.post("/auth/login", json=payload).status_code == 401

    response = client.post("/auth/login", json=payload)
    assert response.status_code == 429
    assert response.headers["Retry-After"]
    assert response.json()["detail"]["limit"] == LOGIN_RATE_LIMIT

    other_ip = client.post("/auth/login", json=payload, headers={"X-Forwarded-For": "203.0.113.9"})
    assert other_ip.status_code == 401


def test_check_rate_limit_counts_in_memory():
    assert check_rate_limit("unit:key", 2, 60) == (True, 1, 60)
    assert check_rate_limit("unit:key", 2, 60)[0] is True
    allowed, count, ttl = check_rate_limit("unit:key", 2, 60)
    assert allowed is False
    assert count == 2
    assert 0 < ttl <= 60


def test_me_requires_a_valid_token(client, db, admin):
    assert client.get("/auth/me").status_code in (401, 403)
    assert client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"}).status_code == 401
    assert client.get("/auth/me", headers={"Authorization": "Bearer a.b.c"}).status_code == 401

    expired = create_access_token({"sub": str(admin.id)}, expires_delta=timedelta(minutes=-5))
    assert client.get("/auth/me", headers={"Authorization": f"Bearer {expired}"}).status_code == 401

    headers = auth_headers(admin)
    admin.is_active = False
    db.commit()
    assert client.get("/auth/me", headers=headers).status_code == 401


def test_update_me(client, admin):
    response = client.patch(
        "/auth/me", json={"name": "Admin Sol", "nif": "123456789"}, headers=auth_headers(admin)
    )
    assert response.status_code == 200
    assert response.json()["name"] == "Admin Sol"
    assert response.json()["nif"] == "123456789"

    invalid = client.patch("/auth/me", json={"phone": "12345"}, headers=auth_headers(admin))
    assert invalid.status_code == 422


def test_timed_tokens():
    token = generate_timed_token({"invitation_id": 1}, salt="one")
    assert verify_timed_token(token, salt="one") == {"invitation_id": 1}
    assert verify_timed_token(token, salt="two") is None
    assert verify_timed_token(token + "x", salt="one") is None


def test_security_headers(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["Cache-Control"] == "no-store, no-cache, must-revalidate"
    assert "default-src 'none'" in response.headers["Content-Security-Policy"]


def test_health_is_excluded_from_security_headers(client):
    response = client.get("/health")
    assert response.json() == {"status": "healthy"}
    assert "X-Frame-Options" not in response.headers


def test_redis_health_without_redis(client):
    response = client.get("/health/redis")
    assert response.json()["status"] == "unhealthy"


def test_unknown_condominium_is_404(client, db, admin):
    other = make_user(db, email="other@example.com")
    response = client.get("/condominiums/999", headers=auth_headers(other))
    assert response.status_code == 404
    assert response.json() == {"detail": "Condominium not found"}
