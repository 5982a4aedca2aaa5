"""
User accounts: registration, login and admin user management.

Emails are stored lower-cased so lookups ignore case. Password hashes never
leave this module.
"""

from typing import Dict, List, Optional

import config
from auth import Credentials, Identity
from database import COLL_USERS, ContentStore, utcnow
from exceptions import ConflictError, Forbidden, NotFound, Unauthenticated, ValidationError
from logger import get_logger
from site_settings import SiteSettingsStore

logger = get_logger(__name__)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def public_user(user: Dict) -> Dict:
    return {
        "_id": str(user["_id"]),
        "name": user.get("name"),
        "email": user.get("email"),
        "role": user.get("role", config.DEFAULT_ROLE),
        "created_at": user.get("created_at"),
    }


class UserService:
    """User records over the content store."""

    def __init__(self, store: ContentStore, credentials: Credentials):
        self.store = store
        self.credentials = credentials

    def _load(self, user_id) -> Dict:
        user = self.store.find_by_id(COLL_USERS, user_id)
        if not user:
            raise NotFound("User not found")
        return user

    def _create(self, name: str, email: str, password: str, role: str) -> Dict:
        name = (name or "").strip()
        email = normalize_email(email)
        if not name or not email or not password:
            raise ValidationError("Name, email and password are required")
        if role not in config.ROLES:
            raise ValidationError("Invalid role provided")
        if self.store.find_one(COLL_USERS, {"email": email}, projection={"_id": 1}):
            raise ConflictError("User with this email already exists")

        doc = {
            "name": name,
            "email": email,
            "password_hash": self.credentials.hash_password(password),
            "role": role,
            "created_at": utcnow(),
        }
        doc["_id"] = self.store.insert(COLL_USERS, doc)
        logger.info(f"User {doc['_id']} created with role '{role}'")
        return public_user(doc)

    def register(self, name: str, email: str, password: str) -> Dict:
        if not SiteSettingsStore(self.store).registration_enabled():
            raise Forbidden("Registration is currently disabled")
        return self._create(name, email, password, config.DEFAULT_ROLE)

    def login(self, email: str, password: str) -> Dict:
        user = self.store.find_one(COLL_USERS, {"email": normalize_email(email)})
        if not user or not self.credentials.verify_password(password, user.get("password_hash")):
            raise Unauthenticated("Invalid email or password")
        role = user.get("role", config.DEFAULT_ROLE)
        return {
            "token": self.credentials.issue_token(str(user["_id"]), role),
            "token_type": "bearer",
            "user": public_user(user),
        }

    def me(self, identity: Identity) -> Dict:
        return public_user(self._load(identity.identity_id))

    # Admin operations

    def list(self) -> List[Dict]:
        users = self.store.find_many(
            COLL_USERS, sort=[("created_at", -1), ("_id", -1)], projection={"password_hash": 0}
        )
        return [public_user(u) for u in users]

    def get(self, user_id) -> Dict:
        return public_user(self._load(user_id))

    def create(self, name: str, email: str, password: str, role: Optional[str] = None) -> Dict:
        return self._create(name, email, password, role or config.DEFAULT_ROLE)

    def update_role(self, user_id, role: str) -> Dict:
        if role not in config.ROLES:
            raise ValidationError("Invalid role provided")
        user = self._load(user_id)
        self.store.update_one(
            COLL_USERS, {"_id": user["_id"]}, {"$set": {"role": role, "updated_at": utcnow()}}
        )
        logger.info(f"User {user['_id']} role updated to '{role}'")
        user["role"] = role
        return public_user(user)

    def delete(self, user_id, identity: Identity) -> None:
        user = self._load(user_id)
        if str(user["_id"]) == identity.identity_id:
            raise ValidationError("You cannot delete your own admin account")
        self.store.delete_one(COLL_USERS, {"_id": user["_id"]})
        logger.info(f"User {user['_id']} deleted by {identity.identity_id}")

    def ensure_admin(self, email: str, password: str, name: str = "Admin") -> Optional[str]:
        """Create the bootstrap admin unless a user with that email already exists."""
        if self.store.find_one(COLL_USERS, {"email": normalize_email(email)}, projection={"_id": 1}):
            return None
        admin = self._create(name, email, password, "admin")
        logger.info(f"Bootstrapped admin account {admin['email']}")
        return admin["_id"]
