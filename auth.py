"""
Authorization Gate

Two stages guard every protected route:

- authenticate(token) verifies the bearer token and derives the caller's
  Identity (id + role).
- authorize(identity, roles) checks the identity's role against the set a
  route requires.

Public routes skip both; admin-only routes run both in sequence. Password
hashing and token signing live in Credentials so they can be swapped out
(tests use cheap bcrypt rounds).
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

import jwt
from jwt import exceptions as jwt_exc
from fastapi import Depends, Request
from passlib.context import CryptContext

import config
from exceptions import Forbidden, InvalidToken, MissingToken, Unauthenticated
from logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Identity:
    identity_id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class Credentials:
    """Password hashing and signed session tokens."""

    def __init__(self, secret: str = None, algorithm: str = None,
                 expire_minutes: int = None, bcrypt_rounds: int = None):
        self.secret = secret or config.JWT_SECRET
        self.algorithm = algorithm or config.JWT_ALGORITHM
        self.expire_minutes = expire_minutes or config.ACCESS_TOKEN_EXPIRE_MINUTES
        self.pwd_context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=bcrypt_rounds or config.BCRYPT_ROUNDS,
        )

    def hash_password(self, plaintext: str) -> str:
        return self.pwd_context.hash(plaintext)

    def verify_password(self, plaintext: str, password_hash: Optional[str]) -> bool:
        if not password_hash:
            return False
        try:
            return self.pwd_context.verify(plaintext, password_hash)
        except ValueError:
            logger.warning("Stored password hash could not be identified")
            return False

    def issue_token(self, identity_id: str, role: str,
                    expires_delta: Optional[timedelta] = None) -> str:
        expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=self.expire_minutes))
        to_encode = {"sub": str(identity_id), "role": role, "exp": expire}
        return jwt.encode(to_encode, self.secret, algorithm=self.algorithm)

    def verify_token(self, token: str) -> dict:
        """Decode a token, raising InvalidToken on a bad signature, expiry or shape."""
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt_exc.InvalidTokenError:
            raise InvalidToken()
        if not payload.get("sub"):
            raise InvalidToken()
        return payload


def authenticate(token: Optional[str], credentials: Credentials) -> Identity:
    if not token:
        raise MissingToken()
    payload = credentials.verify_token(token)
    # Tokens without a role claim are treated as regular users.
    return Identity(identity_id=str(payload["sub"]), role=payload.get("role") or config.DEFAULT_ROLE)


def authorize(identity: Optional[Identity], required_roles: Iterable[str]) -> Identity:
    if identity is None:
        raise Unauthenticated()
    roles = set(required_roles)
    if identity.role not in roles:
        logger.warning(f"Identity {identity.identity_id} with role '{identity.role}' denied; needs {sorted(roles)}")
        raise Forbidden(f"Access denied. Role '{identity.role}' is not authorized to access this resource.")
    return identity


def bearer_token(request: Request) -> Optional[str]:
    auth = request.headers.get("authorization")
    if not auth:
        return None
    scheme, _, token = auth.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


# FastAPI dependencies

_credentials = None


def get_credentials() -> Credentials:
    global _credentials
    if _credentials is None:
        _credentials = Credentials()
    return _credentials


async def get_current_user(request: Request,
                           credentials: Credentials = Depends(get_credentials)) -> Identity:
    identity = authenticate(bearer_token(request), credentials)
    request.state.identity = identity
    return identity


async def get_optional_user(request: Request,
                            credentials: Credentials = Depends(get_credentials)) -> Optional[Identity]:
    """
    Like get_current_user, but anonymous callers get None instead of an error.

    A stale or invalid token is treated as no token at all, so public reads
    keep working for clients still holding an expired session.
    """
    token = bearer_token(request)
    if token is None:
        return None
    try:
        return await get_current_user(request, credentials)
    except InvalidToken:
        logger.info("Ignoring invalid bearer token on a public route")
        return None


def require_roles(*roles: str):
    async def dependency(identity: Identity = Depends(get_current_user)) -> Identity:
        return authorize(identity, roles)
    return dependency


require_admin = require_roles("admin")
