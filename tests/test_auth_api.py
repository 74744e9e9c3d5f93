from billing.models import User

from conftest import make_user


def test_login_me_logout(auth_client):
    me = auth_client.get("/auth/me").get_json()
    assert me["user"]["username"] == "owner"
    assert me["user"]["is_admin"] is False

    assert auth_client.post("/auth/logout").status_code == 200
    assert auth_client.get("/auth/me").status_code == 401


def test_login_rejects_bad_password(client, user):
    response = client.post("/auth/login", json={"username": "owner", "password": "wrong"})
    assert response.status_code == 401


def test_inactive_user_cannot_login(client, db):
    user = make_user("sleeper")
    user.is_active = False
    db.session.commit()
    response = client.post("/auth/login", json={"username": "sleeper", "password": "secret"})
    assert response.status_code == 403


def test_seed_admin_only_once(client, db):
    response = client.post("/auth/seed-admin", json={"username": "root", "password": "pw"})
    assert response.status_code == 201
    assert User.query.filter_by(username="root").one().is_admin is True

    response = client.post("/auth/seed-admin", json={"username": "other", "password": "pw"})
    assert response.status_code == 409


def test_csrf_token_endpoint(client):
    assert client.get("/auth/csrf-token").get_json()["csrf_token"]


def test_create_user_cli(app, db):
    result = app.test_cli_runner().invoke(args=["create-user", "clerk", "--password", "pw", "--admin"])
    assert result.exit_code == 0, result.output
    assert User.query.filter_by(username="clerk").one().is_admin is True

    result = app.test_cli_runner().invoke(args=["create-user", "clerk", "--password", "pw"])
    assert result.exit_code != 0
    assert "already exists" in result.output
