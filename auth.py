"""
Identity & session

Accounts are stored in one "account" collection with a `kind` of
"user" or "partner". Sessions are stateless HS256 tokens carrying the
account id (`sub`) and a fixed 7-day expiry; they are delivered both in
the response body and as an HttpOnly cookie.
"""

import logging
from datetime import timedelta
from typing import Optional, Tuple

import bcrypt
import jwt
from email_validator import EmailNotValidError, validate_email
from fastapi import Depends, Header, Request, Response
from pymongo.errors import DuplicateKeyError

import config
import database
from database import create_document, to_object_id
from errors import (
    DuplicateAccountError,
    ForbiddenError,
    InvalidCredentialsError,
    UnauthenticatedError,
    ValidationError,
)
from schemas import Account, new_partner_defaults

logger = logging.getLogger(__name__)

ACCOUNT_KINDS = ("user", "partner")

REQUIRED_FIELDS = {
    "user": ("username", "email", "password"),
    "partner": ("name", "email", "password", "brand_name"),
}

MISSING_FIELDS_MESSAGE = {
    "user": "All fields are required",
    "partner": "Name, email, password, and brand name are required",
}

MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_BYTES = 72  # bcrypt input limit
MAX_DESCRIPTION_LENGTH = 300


# -----------------
# Hashing & tokens
# -----------------

def hash_password(pw: str) -> str:
    return bcrypt.hashpw(pw.encode(), bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS)).decode()


def verify_password(pw: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(pw.encode(), password_hash.encode())
    except ValueError:
        return False


def create_token(account_id: str) -> str:
    issued = database.now()
    payload = {
        "sub": account_id,
        "iat": issued,
        "exp": issued + timedelta(days=config.TOKEN_TTL_DAYS),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(
            token,
            config.JWT_SECRET,
            algorithms=[config.JWT_ALGORITHM],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise UnauthenticatedError("Session expired")
    except jwt.InvalidTokenError as e:
        logger.warning("Rejected session token: %s", e)
        raise UnauthenticatedError("Not authorized, invalid token")


# -----------------
# Projections
# -----------------

def public_account(account: dict) -> dict:
    """Client-safe view of an account; never includes the password hash."""
    base = {"id": str(account["_id"]), "kind": account["kind"], "email": account["email"]}
    if account["kind"] == "partner":
        base.update({
            "name": account.get("name"),
            "brand_name": account.get("brand_name"),
            "description": account.get("description") or "",
            "profile_pic": account.get("profile_pic"),
        })
    else:
        base["username"] = account.get("username")
    return base


# -----------------
# Operations
# -----------------

def _clean(value) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def normalize_email(email: str) -> str:
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        raise ValidationError("Invalid email address")
    return email.lower()


def check_password(password: str):
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if len(password.encode()) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")


def register(kind: str, fields: dict) -> Tuple[str, dict]:
    if kind not in ACCOUNT_KINDS:
        raise ValidationError("Unknown account kind")
    values = {k: _clean(v) for k, v in fields.items()}
    # passwords are taken verbatim
    values["password"] = fields.get("password") or None
    if any(not values.get(f) for f in REQUIRED_FIELDS[kind]):
        raise ValidationError(MISSING_FIELDS_MESSAGE[kind])

    email = normalize_email(values["email"])
    check_password(values["password"])

    doc = {"kind": kind, "email": email}
    if kind == "user":
        doc["username"] = values["username"]
    else:
        description = values.get("description") or ""
        if len(description) > MAX_DESCRIPTION_LENGTH:
            raise ValidationError(f"Description must be at most {MAX_DESCRIPTION_LENGTH} characters")
        doc.update(new_partner_defaults())
        doc.update({"name": values["name"], "brand_name": values["brand_name"], "description": description})

    accounts = database.get_db()["account"]
    if accounts.find_one({"email": email, "kind": kind}):
        raise DuplicateAccountError("User already exists" if kind == "user" else "Partner already exists")
    doc["password_hash"] = hash_password(values["password"])
    try:
        account_id = create_document("account", Account(**doc))
    except DuplicateKeyError:
        raise DuplicateAccountError("User already exists" if kind == "user" else "Partner already exists")

    account = accounts.find_one({"_id": to_object_id(account_id)})
    logger.info("Registered %s account %s", kind, account_id)
    return create_token(account_id), public_account(account)


def login(kind: str, email: Optional[str], password: Optional[str]) -> Tuple[str, dict]:
    if kind not in ACCOUNT_KINDS:
        raise ValidationError("Unknown account kind")
    email = _clean(email)
    if not email or not password:
        raise ValidationError("All fields are required")
    account = database.get_db()["account"].find_one({"email": email.lower(), "kind": kind})
    if not account or not verify_password(password, account.get("password_hash", "")):
        raise InvalidCredentialsError("Invalid credentials")
    return create_token(str(account["_id"])), public_account(account)


def resolve(token: Optional[str]) -> dict:
    """Turn a session token into its account document (kind included)."""
    if not token:
        raise UnauthenticatedError("Not authorized, no token")
    payload = decode_token(token)
    account_id = to_object_id(payload.get("sub"))
    if account_id is None:
        raise UnauthenticatedError("Not authorized, invalid token")
    account = database.get_db()["account"].find_one({"_id": account_id})
    if not account:
        raise UnauthenticatedError("Not authorized, account not found")
    return account


# -----------------
# HTTP glue
# -----------------

def set_session_cookie(response: Response, token: str):
    response.set_cookie(
        key=config.COOKIE_NAME,
        value=token,
        max_age=config.TOKEN_TTL_DAYS * 24 * 60 * 60,
        httponly=True,
        secure=config.COOKIE_SECURE,
        samesite="strict",
    )


def clear_session_cookie(response: Response):
    response.delete_cookie(
        key=config.COOKIE_NAME,
        httponly=True,
        secure=config.COOKIE_SECURE,
        samesite="strict",
    )


def token_from_request(request: Request, authorization: Optional[str]) -> Optional[str]:
    # An explicit Authorization header wins over the cookie
    if authorization:
        parts = authorization.split()
        if len(parts) != 2 or parts[0].lower() != "bearer":
            raise UnauthenticatedError("Invalid Authorization header")
        return parts[1]
    return request.cookies.get(config.COOKIE_NAME)


def get_current_account(request: Request, authorization: Optional[str] = Header(None)) -> dict:
    return resolve(token_from_request(request, authorization))


def get_optional_account(request: Request, authorization: Optional[str] = Header(None)) -> Optional[dict]:
    try:
        token = token_from_request(request, authorization)
        return resolve(token) if token else None
    except UnauthenticatedError:
        return None


def require_partner(account=Depends(get_current_account)) -> dict:
    if account["kind"] != "partner":
        raise ForbiddenError("Access denied: Partner only")
    return account


def require_user(account=Depends(get_current_account)) -> dict:
    if account["kind"] != "user":
        raise ForbiddenError("Access denied: User only")
    return account
