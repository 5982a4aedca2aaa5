"""
Tests for user accounts and admin user management
"""

import pytest

from conftest import identity_of
from database import COLL_USERS
from exceptions import ConflictError, Forbidden, NotFound, Unauthenticated, ValidationError
from site_settings import SiteSettingsStore
from users import UserService, normalize_email, public_user


@pytest.fixture
def service(store, credentials):
    return UserService(store, credentials)


class TestRegister:
    """Tests for self-registration."""

    def test_register_creates_regular_user(self, store, service):
        user = service.register("Alice", "Alice@Example.com", "pw123")

        assert user["role"] == "user"
        assert user["email"] == "alice@example.com"
        assert "password_hash" not in user
        stored = store.find_one(COLL_USERS, {"email": "alice@example.com"})
        assert stored["password_hash"] != "pw123"

    def test_duplicate_email_rejected_case_insensitively(self, service):
        service.register("Alice", "alice@example.com", "pw")
        with pytest.raises(ConflictError):
            service.register("Other Alice", "ALICE@example.com", "pw")

    @pytest.mark.parametrize("name,email,password", [
        ("", "a@example.com", "pw"),
        ("Alice", "", "pw"),
        ("Alice", "a@example.com", ""),
    ])
    def test_missing_fields(self, service, name, email, password):
        with pytest.raises(ValidationError):
            service.register(name, email, password)

    def test_registration_can_be_disabled(self, store, service):
        SiteSettingsStore(store).update({"enable_registration": False})

        with pytest.raises(Forbidden):
            service.register("Alice", "alice@example.com", "pw")
        assert store.count(COLL_USERS) == 0


class TestLogin:
    """Tests for credential checks and token issue."""

    def test_login_returns_token_for_identity(self, service, credentials):
        user = service.register("Alice", "alice@example.com", "pw123")

        result = service.login("ALICE@example.com", "pw123")

        assert result["token_type"] == "bearer"
        assert result["user"]["_id"] == user["_id"]
        payload = credentials.verify_token(result["token"])
        assert payload["sub"] == user["_id"]
        assert payload["role"] == "user"

    def test_wrong_password(self, service):
        service.register("Alice", "alice@example.com", "pw123")
        with pytest.raises(Unauthenticated) as exc_info:
            service.login("alice@example.com", "nope")
        assert exc_info.value.message == "Invalid email or password"

    def test_unknown_email(self, service):
        with pytest.raises(Unauthenticated):
            service.login("ghost@example.com", "pw")

    def test_user_without_hash_cannot_login(self, store, service):
        store.insert(COLL_USERS, {"name": "Legacy", "email": "legacy@example.com", "role": "user"})
        with pytest.raises(Unauthenticated):
            service.login("legacy@example.com", "anything")


class TestAdminOperations:
    """Tests for the admin-only user operations."""

    def test_me(self, service, make_user):
        alice = make_user("Alice")
        assert service.me(identity_of(alice))["name"] == "Alice"

    def test_list_omits_password_hashes(self, service, make_user):
        make_user("Alice")
        make_user("Bob")

        users = service.list()

        assert len(users) == 2
        assert all("password_hash" not in u for u in users)

    def test_get_missing_user(self, service):
        with pytest.raises(NotFound):
            service.get("0123456789abcdef01234567")
        with pytest.raises(NotFound):
            service.get("garbage")

    def test_create_with_role(self, service):
        admin = service.create("Root", "root@example.com", "pw", "admin")
        assert admin["role"] == "admin"

    def test_create_with_invalid_role(self, service):
        with pytest.raises(ValidationError):
            service.create("Root", "root@example.com", "pw", "superuser")

    def test_update_role(self, store, service, make_user):
        alice = make_user("Alice")

        updated = service.update_role(alice["_id"], "admin")

        assert updated["role"] == "admin"
        assert store.find_by_id(COLL_USERS, alice["_id"])["role"] == "admin"

    def test_update_role_rejects_unknown_role(self, service, make_user):
        alice = make_user("Alice")
        with pytest.raises(ValidationError):
            service.update_role(alice["_id"], "owner")

    def test_delete_user(self, store, service, make_user):
        admin = make_user("Root", role="admin")
        alice = make_user("Alice")

        service.delete(alice["_id"], identity_of(admin))

        assert store.find_by_id(COLL_USERS, alice["_id"]) is None

    def test_admin_cannot_delete_self(self, store, service, make_user):
        admin = make_user("Root", role="admin")

        with pytest.raises(ValidationError):
            service.delete(admin["_id"], identity_of(admin))
        assert store.find_by_id(COLL_USERS, admin["_id"]) is not None


class TestEnsureAdmin:

    def test_creates_admin_once(self, store, service):
        first = service.ensure_admin("Root@Example.com", "pw")
        second = service.ensure_admin("root@example.com", "pw")

        assert first is not None
        assert second is None
        assert store.count(COLL_USERS, {"role": "admin"}) == 1


class TestHelpers:

    def test_normalize_email(self):
        assert normalize_email("  Mixed@Case.COM ") == "mixed@case.com"
        assert normalize_email(None) == ""

    def test_public_user_defaults_role(self, store):
        user_id = store.insert(COLL_USERS, {"name": "NoRole", "email": "n@example.com"})
        user = public_user(store.find_by_id(COLL_USERS, user_id))
        assert user["role"] == "user"
        assert user["_id"] == str(user_id)
