from app.services.auth import create_access_token, decode_access_token


def register(client, email="trader@example.com", password="secret123", **extra):
    return client.post("/api/auth/register", json={"email": email, "password": password, **extra})


def test_register_returns_user_and_token(client):
    response = register(client, first_name="Asha")

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "success"
    assert body["message"] == "User registered successfully"
    assert body["data"]["user"]["email"] == "trader@example.com"
    assert body["data"]["user"]["first_name"] == "Asha"
    assert body["data"]["user"]["role"] == "user"
    assert "password" not in body["data"]["user"]

    payload = decode_access_token(body["data"]["token"])
    assert payload.email == "trader@example.com"
    assert payload.role == "user"


def test_register_duplicate_email(client):
    register(client)
    response = register(client, email="Trader@Example.com")

    assert response.status_code == 400
    assert response.json()["message"] == "User with this email already exists"


def test_register_validation_error(client):
    response = register(client, email="not-an-email", password="123")

    assert response.status_code == 422
    assert response.json()["status"] == "error"


def test_register_rejects_password_over_72_bytes(client):
    # 40个字符，但UTF-8编码为80字节
    response = register(client, password="é" * 40)

    assert response.status_code == 422
    assert response.json()["message"] == "Validation failed"


def test_register_accepts_72_byte_multibyte_password(client):
    response = register(client, password="é" * 36)
    assert response.status_code == 201


def test_login_success(client):
    register(client)
    response = client.post("/api/auth/login", json={"email": "TRADER@example.com", "password": "secret123"})

    assert response.status_code == 200
    assert response.json()["data"]["user"]["email"] == "trader@example.com"
    assert response.json()["data"]["token"]


def test_login_wrong_password(client):
    register(client)
    response = client.post("/api/auth/login", json={"email": "trader@example.com", "password": "wrong-password"})

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid credentials"


def test_login_unknown_email(client):
    response = client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "secret123"})
    assert response.status_code == 401


def test_me_requires_token(client):
    response = client.get("/api/auth/me")

    assert response.status_code == 401
    assert response.json() == {"status": "error", "data": None, "message": "Authorization token required"}


def test_me_rejects_non_bearer_and_invalid_tokens(client):
    assert client.get("/api/auth/me", headers={"Authorization": "Basic abc"}).status_code == 401

    response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["message"] == "Unauthorized - Invalid token"


def test_me_rejects_expired_token(client, db_manager):
    token = register(client).json()["data"]["token"]
    user_id = int(decode_access_token(token).sub)

    from app.database.schemas import UserDB

    with db_manager.get_session() as session:
        expired = create_access_token(session.get(UserDB, user_id), expires_in=-10)

    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {expired}"})
    assert response.status_code == 401
    assert response.json()["message"] == "Unauthorized - Token expired"


def test_me_returns_current_user(client):
    token = register(client).json()["data"]["token"]

    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert response.json()["data"]["user"]["email"] == "trader@example.com"


def test_me_for_deleted_user(client, db_manager):
    token = register(client).json()["data"]["token"]

    from app.services.users import UserService

    with db_manager.get_session() as session:
        UserService(session).delete(int(decode_access_token(token).sub))

    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 404
