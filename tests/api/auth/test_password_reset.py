from datetime import timedelta
from utils.security import generate_token, verify_password
from utils.timeutils import as_utc, utcnow
from tests.conftest import TEST_PASSWORD


async def request_reset(client, session, user) -> str:
    response = await client.post("/auth/forgot-password", json={"email": user.email})
    assert response.status_code == 200
    session.refresh(user)
    return user.password_reset_token


async def test_forgot_password_success(client, verified_user, session):
    """Test successful password reset request."""
    response = await client.post("/auth/forgot-password", json={"email": verified_user.email})

    assert response.status_code == 200
    assert "reset link has been sent" in response.json()["message"].lower()

    session.refresh(verified_user)
    assert verified_user.password_reset_token is not None
    assert as_utc(verified_user.password_reset_expires_at) > utcnow()


async def test_forgot_password_nonexistent_user(client):
    """Same answer for unknown emails, so account existence does not leak."""
    response = await client.post("/auth/forgot-password", json={"email": "nonexistent@example.com"})

    assert response.status_code == 200
    assert "reset link has been sent" in response.json()["message"].lower()


async def test_reset_password_success(client, verified_user, session):
    reset_token = await request_reset(client, session, verified_user)

    new_password = "NewSecurePass123!"
    response = await client.post("/auth/reset-password", json={
        "token": reset_token,
        "new_password": new_password
    })

    assert response.status_code == 200
    assert "password updated" in response.json()["message"].lower()

    session.refresh(verified_user)
    assert verify_password(new_password, verified_user.hashed_password)
    assert verified_user.password_reset_token is None
    assert verified_user.password_reset_expires_at is None

    response = await client.post("/auth/token", data={"username": verified_user.email, "password": new_password})
    assert response.status_code == 200


async def test_reset_password_invalid_token(client):
    response = await client.post("/auth/reset-password", json={
        "token": "invalid_token_12345",
        "new_password": "NewPassword123!"
    })

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid or expired token"


async def test_reset_password_expired_token(client, verified_user, session):
    reset_token = generate_token()
    verified_user.password_reset_token = reset_token
    verified_user.password_reset_expires_at = utcnow() - timedelta(seconds=1)
    session.commit()

    response = await client.post("/auth/reset-password", json={
        "token": reset_token,
        "new_password": "NewPassword123!"
    })

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid or expired token"


async def test_reset_password_weak_password(client, verified_user, session):
    reset_token = await request_reset(client, session, verified_user)

    response = await client.post("/auth/reset-password", json={
        "token": reset_token,
        "new_password": "weak"
    })

    assert response.status_code == 400


async def test_reset_password_revokes_all_tokens(client, verified_user, session):
    response = await client.post("/auth/token", data={"username": verified_user.email, "password": TEST_PASSWORD})
    old_refresh_token = response.json()["refresh_token"]
    reset_token = await request_reset(client, session, verified_user)

    response = await client.post("/auth/reset-password", json={
        "token": reset_token,
        "new_password": "NewSecurePass123!"
    })
    assert response.status_code == 200

    response = await client.post("/auth/refresh", json={"refresh_token": old_refresh_token})
    assert response.status_code == 401


async def test_reset_password_token_single_use(client, verified_user, session):
    reset_token = await request_reset(client, session, verified_user)

    response = await client.post("/auth/reset-password", json={
        "token": reset_token,
        "new_password": "NewPassword123!"
    })
    assert response.status_code == 200

    response = await client.post("/auth/reset-password", json={
        "token": reset_token,
        "new_password": "AnotherPassword123!"
    })
    assert response.status_code == 400
