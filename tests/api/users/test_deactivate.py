from models.refresh_tokens import RefreshToken
from tests.conftest import TEST_PASSWORD


async def test_deactivate_user_success(client, verified_user, session):
    """Test successful account deactivation."""
    response = await client.post("/auth/token", data={
        "username": verified_user.email,
        "password": TEST_PASSWORD
    })
    access_token = response.json()["access_token"]

    response = await client.request("DELETE", "/users/deactivate",
        headers={"Authorization": f"Bearer {access_token}"},
        json={"password": TEST_PASSWORD}
    )

    assert response.status_code == 200
    assert "deactivated" in response.json()["message"].lower()

    session.refresh(verified_user)
    assert verified_user.is_active is False

    # Verify all refresh tokens are revoked
    tokens = session.query(RefreshToken).filter(RefreshToken.user_id == verified_user.id).all()
    assert tokens
    assert all(token.revoked for token in tokens)

    # Verify cannot login with deactivated account
    response = await client.post("/auth/token", data={
        "username": verified_user.email,
        "password": TEST_PASSWORD
    })
    assert response.status_code == 401


async def test_deactivate_wrong_password(client, verified_user, auth_headers, session):
    response = await client.request("DELETE", "/users/deactivate",
        headers=auth_headers,
        json={"password": "WrongPassword123!"}
    )

    assert response.status_code == 401
    assert response.json()["message"] == "Incorrect password"
    session.refresh(verified_user)
    assert verified_user.is_active is True


async def test_deactivate_unauthenticated(client):
    response = await client.request("DELETE", "/users/deactivate", json={"password": TEST_PASSWORD})

    assert response.status_code == 401
