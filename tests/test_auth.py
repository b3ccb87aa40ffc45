"""
Account, token and auth-state broadcast tests.
"""

from unittest.mock import MagicMock

import jwt
import pytest
from pymongo.errors import DuplicateKeyError

import config
from auth import AuthEvents, create_token, hash_password, resolve_session, sign_in, sign_out, sign_up, verify_password
from errors import AuthorizationError, ValidationError
from schemas import LoginBody, SignupBody


def test_password_hashing_is_salted():
    first = hash_password("secret123")
    second = hash_password("secret123")

    assert first != second
    assert verify_password("secret123", first)
    assert verify_password("secret123", second)
    assert not verify_password("wrong", first)
    assert not verify_password("secret123", "")


def test_auth_events_subscribe_and_unsubscribe():
    events = AuthEvents()
    seen = []

    unsubscribe = events.subscribe(seen.append)
    events.publish({"email": "a@gmail.com"})
    events.publish(None)
    unsubscribe()
    events.publish({"email": "b@gmail.com"})

    assert seen == [{"email": "a@gmail.com"}, None]


def test_auth_events_failing_subscriber_does_not_block_others():
    events = AuthEvents()
    seen = []

    def broken(user):
        raise RuntimeError("boom")

    events.subscribe(broken)
    events.subscribe(seen.append)
    events.publish(None)

    assert seen == [None]


def test_sign_up_sign_in_and_out_broadcast(db):
    events = AuthEvents()
    transitions = []
    events.subscribe(lambda user: transitions.append(user["email"] if user else None))

    created = sign_up(db, SignupBody(email="shopper@gmail.com", password="secret123"), events=events)
    assert created["user"]["name"] == "shopper"

    signed_in = sign_in(db, LoginBody(email="shopper@gmail.com", password="secret123"), events=events)
    session = resolve_session(db, signed_in["token"])
    assert session.user["email"] == "shopper@gmail.com"

    sign_out(db, session, events=events)

    assert transitions == ["shopper@gmail.com", "shopper@gmail.com", None]
    assert resolve_session(db, signed_in["token"]) is None
    # other tokens for the same account stay valid
    assert resolve_session(db, created["token"]) is not None


def test_sign_up_duplicate_email(db):
    body = SignupBody(email="shopper@gmail.com", password="secret123")
    sign_up(db, body, events=AuthEvents())

    with pytest.raises(ValidationError):
        sign_up(db, body, events=AuthEvents())


def test_sign_in_wrong_password(db):
    sign_up(db, SignupBody(email="shopper@gmail.com", password="secret123"), events=AuthEvents())

    with pytest.raises(AuthorizationError):
        sign_in(db, LoginBody(email="shopper@gmail.com", password="nope"), events=AuthEvents())
    with pytest.raises(AuthorizationError):
        sign_in(db, LoginBody(email="nobody@gmail.com", password="secret123"), events=AuthEvents())


def test_resolve_session_rejects_bad_tokens(db):
    assert resolve_session(db, None) is None
    assert resolve_session(db, "garbage") is None

    forged = jwt.encode({"id": "0" * 24, "jti": "x", "email": "a@gmail.com"}, "not-the-secret", algorithm="HS256")
    assert resolve_session(db, forged) is None

    orphan = create_token({"id": "0" * 24, "email": "ghost@gmail.com"})
    assert resolve_session(db, orphan) is None


# ----------------------- HTTP -----------------------

def test_signup_login_me_logout(client):
    response = client.post("/auth/signup", json={"email": "shopper@gmail.com", "password": "secret123", "name": "Sam"})
    assert response.status_code == 200

    response = client.post("/auth/login", json={"email": "shopper@gmail.com", "password": "secret123"})
    assert response.status_code == 200
    headers = {"Authorization": f"Bearer {response.json()['token']}"}

    me = client.get("/auth/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["user"]["name"] == "Sam"

    assert client.post("/auth/logout", headers=headers).json() == {"ok": True}
    assert client.get("/auth/me", headers=headers).status_code == 401


def test_login_invalid_credentials(client):
    response = client.post("/auth/login", json={"email": "nobody@gmail.com", "password": "secret123"})
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid credentials"}


def test_signup_duplicate_endpoint(client, db):
    body = {"email": "shopper@gmail.com", "password": "secret123"}
    client.post("/auth/signup", json=body)

    response = client.post("/auth/signup", json=body)

    assert response.status_code == 400
    assert db[config.USERS].count_documents({}) == 1


def index_for(collection, field):
    for info in collection.index_information().values():
        if info["key"][0][0] == field:
            return info
    return None


def test_revoked_tokens_expire_through_ttl_index(db):
    events = AuthEvents()
    signed_up = sign_up(db, SignupBody(email="shopper@gmail.com", password="secret123"), events=events)

    sign_out(db, resolve_session(db, signed_up["token"]), events=events)

    index = index_for(db[config.REVOKED_TOKENS], "expires_at")
    assert index is not None
    assert index["expireAfterSeconds"] == 0
    assert db[config.REVOKED_TOKENS].find_one()["expires_at"] is not None


def test_email_is_unique_in_the_store(db):
    sign_up(db, SignupBody(email="shopper@gmail.com", password="secret123"), events=AuthEvents())

    index = index_for(db[config.USERS], "email")
    assert index is not None
    assert index.get("unique") is True
    with pytest.raises(DuplicateKeyError):
        db[config.USERS].insert_one({"email": "shopper@gmail.com", "name": "copy"})


def test_concurrent_sign_up_duplicate_maps_to_validation_error():
    db = MagicMock()
    users = db.__getitem__.return_value
    users.find_one.return_value = None
    users.insert_one.side_effect = DuplicateKeyError("E11000 duplicate key error")

    with pytest.raises(ValidationError) as exc_info:
        sign_up(db, SignupBody(email="shopper@gmail.com", password="secret123"), events=AuthEvents())
    assert exc_info.value.message == "Email already registered"
