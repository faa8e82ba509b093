from sqlalchemy import func, select

from conftest import PASSWORD, auth_headers
from dochub.api.v1 import auth
from dochub.core.security import decode_token
from dochub.models.user import Role, User

API = "/api/v1"


def registration(**overrides):
    data = {
        "username": "carol",
        "email": "carol@example.com",
        "password": "secret123",
        "confirm_password": "secret123",
    }
    data.update(overrides)
    return data


async def _user_count(db):
    return (await db.execute(select(func.count()).select_from(User))).scalar_one()


async def test_register_returns_tokens_and_default_role(client):
    response = await client.post(f"{API}/auth/register", json=registration())

    assert response.status_code == 201
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["username"] == "carol"
    assert body["user"]["roles"] == ["User"]
    claims = decode_token(body["access_token"])
    assert claims["roles"] == ["User"]
    assert claims["sub"] == str(body["user"]["id"])


async def test_register_duplicate_username_is_conflict(client, db, alice):
    before = await _user_count(db)
    response = await client.post(
        f"{API}/auth/register", json=registration(username="ALICE", email="other@example.com")
    )
    assert response.status_code == 409
    assert await _user_count(db) == before


async def test_register_password_mismatch(client):
    response = await client.post(f"{API}/auth/register", json=registration(confirm_password="different"))
    assert response.status_code == 400


async def test_register_rejects_bad_email(client):
    response = await client.post(f"{API}/auth/register", json=registration(email="not-an-email"))
    assert response.status_code == 400


async def test_login_with_form_credentials(client, alice):
    response = await client.post(f"{API}/auth/login", data={"username": "alice", "password": PASSWORD})
    assert response.status_code == 200
    assert response.json()["user"]["id"] == alice.id


async def test_login_with_wrong_password(client, alice):
    response = await client.post(f"{API}/auth/login", data={"username": "alice", "password": "nope"})
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


async def test_me_requires_token(client, alice):
    assert (await client.get(f"{API}/auth/me")).status_code == 401

    response = await client.get(f"{API}/auth/me", headers=auth_headers(alice))
    assert response.status_code == 200
    assert response.json()["username"] == "alice"


async def test_garbage_token_is_rejected(client):
    response = await client.get(f"{API}/folders/", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401


async def test_check_username(client, alice):
    taken = await client.get(f"{API}/auth/check-username/Alice")
    free = await client.get(f"{API}/auth/check-username/zed")
    assert taken.json() == {"exists": True, "available": False}
    assert free.json() == {"exists": False, "available": True}


async def test_refresh_exchanges_refresh_token_only(client, alice):
    login = await client.post(f"{API}/auth/login", data={"username": "alice", "password": PASSWORD})
    tokens = login.json()

    refreshed = await client.post(f"{API}/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert refreshed.status_code == 200
    assert refreshed.json()["user"]["id"] == alice.id

    misuse = await client.post(f"{API}/auth/refresh", json={"refresh_token": tokens["access_token"]})
    assert misuse.status_code == 401


async def test_change_password(client, alice):
    headers = auth_headers(alice)
    wrong = await client.put(
        f"{API}/users/me/password",
        json={"current_password": "nope", "new_password": "newsecret"},
        headers=headers,
    )
    assert wrong.status_code == 400

    changed = await client.put(
        f"{API}/users/me/password",
        json={"current_password": PASSWORD, "new_password": "newsecret"},
        headers=headers,
    )
    assert changed.status_code == 200

    login = await client.post(f"{API}/auth/login", data={"username": "alice", "password": "newsecret"})
    assert login.status_code == 200


async def test_user_administration_is_admin_only(client, alice, admin):
    assert (await client.get(f"{API}/users/", headers=auth_headers(alice))).status_code == 403

    listing = await client.get(f"{API}/users/", headers=auth_headers(admin))
    assert listing.status_code == 200
    assert {u["username"] for u in listing.json()} == {"alice", "admin"}


async def test_admin_grants_and_revokes_roles(client, alice, admin):
    headers = auth_headers(admin)

    granted = await client.put(f"{API}/users/{alice.id}/roles/Admin", headers=headers)
    assert granted.status_code == 200
    assert granted.json()["roles"] == ["Admin", "User"]

    revoked = await client.delete(f"{API}/users/{alice.id}/roles/Admin", headers=headers)
    assert revoked.status_code == 200
    assert revoked.json()["roles"] == ["User"]

    missing = await client.delete(f"{API}/users/{alice.id}/roles/Admin", headers=headers)
    assert missing.status_code == 404

    forbidden = await client.put(f"{API}/users/{admin.id}/roles/Admin", headers=auth_headers(alice))
    assert forbidden.status_code == 403


async def test_role_names_match_case_insensitively(client, db, alice, admin):
    headers = auth_headers(admin)
    roles_before = (await db.execute(select(func.count()).select_from(Role))).scalar_one()

    granted = await client.put(f"{API}/users/{alice.id}/roles/admin", headers=headers)
    assert granted.status_code == 200
    assert granted.json()["roles"] == ["Admin", "User"]
    assert (await db.execute(select(func.count()).select_from(Role))).scalar_one() == roles_before

    login = await client.post(f"{API}/auth/login", data={"username": "alice", "password": PASSWORD})
    token = login.json()["access_token"]
    listing = await client.get(f"{API}/users/", headers={"Authorization": f"Bearer {token}"})
    assert listing.status_code == 200

    revoked = await client.delete(f"{API}/users/{alice.id}/roles/user", headers=headers)
    assert revoked.status_code == 200
    assert revoked.json()["roles"] == ["Admin"]


async def test_register_race_on_unique_username_is_conflict(client, db, alice, monkeypatch):
    async def not_taken(db, value):
        return False

    # Both pre-checks pass, as for a request racing another registration
    monkeypatch.setattr(auth, "username_exists", not_taken)
    monkeypatch.setattr(auth, "email_exists", not_taken)
    before = await _user_count(db)

    response = await client.post(
        f"{API}/auth/register", json=registration(username="alice", email="alice2@example.com")
    )

    assert response.status_code == 409
    assert await _user_count(db) == before
