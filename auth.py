"""
Email/password accounts and bearer tokens.

Sign-in and sign-out are broadcast through ``auth_events`` so interested
parts of the app can react to every login/logout transition.
"""
import hashlib
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, List, NamedTuple, Optional

import jwt
from loguru import logger
from pymongo.errors import DuplicateKeyError, PyMongoError

import config
from database import create_document, serialize_doc, to_object_id
from errors import AuthorizationError, ServerError, ValidationError
from schemas import LoginBody, SignupBody, User

PBKDF2_ROUNDS = 120_000


class Session(NamedTuple):
    """An authenticated caller: the public user fields plus the token claims."""

    user: dict
    claims: dict


class AuthEvents:
    """Push notifications for login/logout. Subscribers get the user dict, or None on logout."""

    def __init__(self):
        self._subscribers: List[Callable[[Optional[dict]], None]] = []

    def subscribe(self, callback: Callable[[Optional[dict]], None]) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, user: Optional[dict]):
        for callback in list(self._subscribers):
            try:
                callback(user)
            except Exception:
                logger.exception("Auth state subscriber {} failed", callback)


auth_events = AuthEvents()


def hash_password(password: str, salt: Optional[str] = None) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), PBKDF2_ROUNDS)
    return f"{salt}${digest.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    salt, _, _ = (password_hash or "").partition("$")
    if not salt:
        return False
    return secrets.compare_digest(hash_password(password, salt), password_hash)


def create_token(user: dict) -> str:
    exp = datetime.now(timezone.utc) + timedelta(days=config.JWT_EXPIRE_DAYS)
    payload = {"id": user["id"], "email": user["email"], "jti": uuid.uuid4().hex, "exp": exp}
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGO)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGO])
    except jwt.ExpiredSignatureError:
        raise AuthorizationError("Token expired")
    except jwt.InvalidTokenError:
        raise AuthorizationError("Invalid token")


def public_user(doc: dict) -> dict:
    doc = serialize_doc(doc)
    return {"id": doc["id"], "name": doc.get("name", ""), "email": doc["email"]}


def sign_up(db, body: SignupBody, events: AuthEvents = auth_events) -> dict:
    try:
        db[config.USERS].create_index("email", unique=True)
        if db[config.USERS].find_one({"email": body.email}):
            raise ValidationError("Email already registered")
        user = User(
            name=body.name or body.email.split("@")[0],
            email=body.email,
            password_hash=hash_password(body.password),
        )
        user_id = create_document(config.USERS, user, database=db)
    except DuplicateKeyError:
        # lost a race with a concurrent sign-up for the same email
        raise ValidationError("Email already registered")
    except PyMongoError:
        logger.exception("Error creating account for {}", body.email)
        raise ServerError("Failed to create account")

    account = {"id": user_id, "name": user.name, "email": user.email}
    token = create_token(account)
    events.publish(account)
    return {"token": token, "user": account}


def sign_in(db, body: LoginBody, events: AuthEvents = auth_events) -> dict:
    try:
        doc = db[config.USERS].find_one({"email": body.email})
    except PyMongoError:
        logger.exception("Error signing in {}", body.email)
        raise ServerError("Failed to sign in")

    if not doc or not verify_password(body.password, doc.get("password_hash")):
        raise AuthorizationError("Invalid credentials")

    account = public_user(doc)
    token = create_token(account)
    events.publish(account)
    return {"token": token, "user": account}


def sign_out(db, session: Session, events: AuthEvents = auth_events):
    """Revoke the session's token. The TTL index drops the record once the token would have expired anyway."""
    expires_at = datetime.fromtimestamp(session.claims["exp"], tz=timezone.utc)
    try:
        db[config.REVOKED_TOKENS].create_index("expires_at", expireAfterSeconds=0)
        db[config.REVOKED_TOKENS].insert_one({"jti": session.claims["jti"], "expires_at": expires_at})
    except PyMongoError:
        logger.exception("Error signing out {}", session.user["email"])
        raise ServerError("Failed to sign out")
    events.publish(None)


def resolve_session(db, token: Optional[str]) -> Optional[Session]:
    """The session behind a bearer token, or None when the token is absent, invalid, revoked or orphaned."""
    if not token:
        return None
    try:
        claims = decode_token(token)
    except AuthorizationError:
        return None

    user_id = to_object_id(claims.get("id"))
    if user_id is None or not claims.get("jti"):
        return None

    try:
        if db[config.REVOKED_TOKENS].find_one({"jti": claims["jti"]}):
            return None
        doc = db[config.USERS].find_one({"_id": user_id})
    except PyMongoError:
        logger.exception("Error resolving session")
        raise ServerError("Internal Server Error")

    if not doc:
        return None
    return Session(user=public_user(doc), claims=claims)
