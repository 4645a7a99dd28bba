# tests/test_auth.py
from fastapi.testclient import TestClient

from hub.baas import get_baas
from hub.main import app

client = TestClient(app)

CREDS = {"email": "maria@example.com", "password": "s3cret-pass"}


def reset():
    client.post("/reset")
    get_baas().auto_confirm = False


def test_sign_up_then_confirm_then_sign_in():
    reset()
    r = client.post("/auth/sign-up", json=CREDS)
    assert r.status_code == 201
    assert r.json()["user"]["email"] == "maria@example.com"
    assert r.json()["session"] is None

    r = client.post("/auth/sign-in", json=CREDS)
    assert r.status_code == 400
    assert r.json()["code"] == "email_not_confirmed"

    get_baas().auth.confirm_email(CREDS["email"])
    r = client.post("/auth/sign-in", json=CREDS)
    assert r.status_code == 200
    token = r.json()["access_token"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["email"] == "maria@example.com"


def test_wrong_password():
    reset()
    client.post("/auth/sign-up", json=CREDS)
    get_baas().auth.confirm_email(CREDS["email"])
    r = client.post("/auth/sign-in", json={"email": CREDS["email"], "password": "nope-nope"})
    assert r.status_code == 400
    assert r.json()["code"] == "invalid_credentials"


def test_weak_password_and_duplicate_sign_up():
    reset()
    r = client.post("/auth/sign-up", json={"email": "x@example.com", "password": "123"})
    assert r.status_code == 422
    assert r.json()["code"] == "weak_password"

    assert client.post("/auth/sign-up", json=CREDS).status_code == 201
    r = client.post("/auth/sign-up", json=CREDS)
    assert r.status_code == 422
    assert r.json()["code"] == "user_already_exists"


def test_sign_out_invalidates_token():
    reset()
    client.post("/auth/sign-up", json=CREDS)
    get_baas().auth.confirm_email(CREDS["email"])
    token = client.post("/auth/sign-in", json=CREDS).json()["access_token"]
    headers = {"Authorization": f"Bearer {token}"}

    assert client.post("/auth/sign-out", headers=headers).json() == {"success": True}
    r = client.get("/auth/me", headers=headers)
    assert r.status_code == 401
    assert r.json()["code"] == "bad_jwt"


def test_me_requires_bearer_token():
    reset()
    assert client.get("/auth/me").status_code == 401
    assert client.get("/auth/me", headers={"Authorization": "Token abc"}).status_code == 401


def test_reset_password_queues_recovery_mail():
    reset()
    r = client.post("/auth/reset-password", json={"email": "someone@example.com"})
    assert r.status_code == 200
    outbox = get_baas().outbox
    assert outbox[-1]["to"] == "someone@example.com"
    assert outbox[-1]["kind"] == "recovery"
