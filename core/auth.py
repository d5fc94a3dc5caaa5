from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Request

from core.config import logger, JWT_SECRET, CUSTOMER_TOKEN_TTL_DAYS

CUSTOMER_ROLE = "customer"


def hash_password(pw: str) -> str:
    return bcrypt.hashpw((pw or "").encode("utf-8"), bcrypt.gensalt(12)).decode("utf-8")


def check_password(pw: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw((pw or "").encode("utf-8"), (hashed or "").encode("utf-8"))
    except ValueError:
        return False


def sign_customer_token(customer, secret: Optional[str] = None) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": customer.id,
        "email": customer.email,
        "firstName": customer.first_name,
        "lastName": customer.last_name,
        "role": CUSTOMER_ROLE,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(days=CUSTOMER_TOKEN_TTL_DAYS)).timestamp()),
    }
    return jwt.encode(payload, secret or JWT_SECRET, algorithm="HS256")


def _bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("authorization") or request.headers.get("Authorization")
    if not auth_header or not auth_header.lower().startswith("bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


def get_token_claims(request: Request, secret: Optional[str] = None) -> Optional[dict]:
    """Decoded bearer token claims, or None if missing or invalid."""
    token = _bearer_token(request)
    secret = secret or JWT_SECRET
    if not token or not secret:
        return None
    try:
        return jwt.decode(token, secret, algorithms=["HS256"])
    except jwt.PyJWTError as ex:
        logger.warning(f"Token verification failed: {ex}")
        return None
