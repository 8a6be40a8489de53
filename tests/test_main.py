from app.services.auth_service import create_access_token


def test_home_endpoint(client):
    response = client.get("/")

    assert response.status_code == 200
    payload = response.json()
    assert payload["message"] == "Gym Management API is running"
    assert payload["status"] == "success"
    assert payload["success"] is True
    assert payload["data"]["service"] == "gymsync-backend"


def test_unknown_route_returns_route_not_found(client):
    response = client.get("/api/does-not-exist")

    assert response.status_code == 404
    payload = response.json()
    assert payload["success"] is False
    assert payload["code"] == "ROUTE_NOT_FOUND"


def test_validation_errors_use_400_with_details(client):
    response = client.post("/api/auth/login", json={"email": "not-an-email", "password": "x"})

    assert response.status_code == 400
    payload = response.json()
    assert payload["code"] == "VALIDATION_ERROR"
    assert any(detail["field"].endswith("email") for detail in payload["details"])


def test_malformed_path_id_is_a_validation_error(client, make_plan):
    make_plan()
    response = client.get("/api/plans/not-a-number")

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_missing_token_is_rejected(client):
    response = client.get("/api/auth/me")

    assert response.status_code == 401
    assert response.json()["code"] == "NO_TOKEN"


def test_garbage_token_is_rejected(client):
    response = client.get("/api/auth/me", headers={"Authorization": "Bearer not.a.jwt"})

    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"


def test_expired_token_is_rejected(client, make_user):
    user = make_user()
    token = create_access_token(user.id, user.role, expires_days=-1)

    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["code"] == "TOKEN_EXPIRED"


def test_token_for_deleted_user_is_rejected(client):
    token = create_access_token(999, "member")

    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["code"] == "USER_NOT_FOUND"
