"""
Tests for routegate.users -- User Directory.

Covers: user creation and email uniqueness, role validation on write,
credential verification (including disabled users), protected identity
rejections, role changes, search, password handling, and propagation.
"""

from __future__ import annotations

import pytest

from routegate.bootstrap import AccessControl, build
from routegate.config import RegistrySettings
from routegate.errors import (
    DuplicateUserError,
    InvalidInputError,
    NotFoundError,
    ProtectedIdentityError,
)
from routegate.store import RegistryStore


def _make_acl() -> AccessControl:
    acl = build(RegistryStore(settings=RegistrySettings(bcrypt_rounds=4)))
    for role_id in ("ADMIN", "SUPERVISOR", "ANALYST"):
        acl.roles.create_role(role_id)
    return acl


def _make_admin(acl: AccessControl):
    return acl.users.create_user(
        "root@example.com", "Admin@123", "ADMIN", is_protected=True, user_id="admin-1"
    )


# ---------------------------------------------------------------------------
# 1. Creation
# ---------------------------------------------------------------------------

class TestCreateUser:
    def test_create_user(self):
        acl = _make_acl()
        user = acl.users.create_user("ana@example.com", "secret", "ANALYST")
        assert user.email == "ana@example.com"
        assert user.role == "ANALYST"
        assert user.enabled is True
        assert user.is_protected is False
        assert acl.users.get_user(user.id) == user

    def test_password_is_hashed(self):
        acl = _make_acl()
        user = acl.users.create_user("ana@example.com", "secret", "ANALYST")
        assert user.password_hash
        assert user.password_hash != "secret"
        assert user.password_hash.startswith("$2")

    def test_password_hash_not_serialized_or_shown(self):
        acl = _make_acl()
        user = acl.users.create_user("ana@example.com", "secret", "ANALYST")
        assert "password_hash" not in user.model_dump()
        assert user.password_hash not in repr(user)

    def test_duplicate_email_rejected(self):
        acl = _make_acl()
        acl.users.create_user("ana@example.com", "secret", "ANALYST")
        with pytest.raises(DuplicateUserError, match="already registered"):
            acl.users.create_user("ana@example.com", "other", "ADMIN")
        assert len(acl.users) == 1

    def test_unknown_role_rejected(self):
        acl = _make_acl()
        with pytest.raises(InvalidInputError, match="not registered"):
            acl.users.create_user("ana@example.com", "secret", "GHOST")
        assert len(acl.users) == 0

    @pytest.mark.parametrize(
        "email,password,role",
        [
            ("", "pw", "ADMIN"),
            ("not-an-email", "pw", "ADMIN"),
            ("ana@example.com", "", "ADMIN"),
            ("ana@example.com", "pw", ""),
        ],
    )
    def test_invalid_input_rejected(self, email, password, role):
        acl = _make_acl()
        with pytest.raises(InvalidInputError):
            acl.users.create_user(email, password, role)

    def test_find_and_search(self):
        acl = _make_acl()
        acl.users.create_user("Ana@Example.com", "pw", "ANALYST")
        acl.users.create_user("sam@example.com", "pw", "SUPERVISOR")
        assert acl.users.find_by_email("Ana@Example.com").role == "ANALYST"
        assert acl.users.find_by_email("nobody@example.com") is None
        assert [u.email for u in acl.users.search("ana")] == ["Ana@Example.com"]
        assert len(acl.users.search("EXAMPLE")) == 2

    def test_get_missing_user(self):
        with pytest.raises(NotFoundError):
            _make_acl().users.get_user("nope")


# ---------------------------------------------------------------------------
# 2. Credentials
# ---------------------------------------------------------------------------

class TestVerifyCredentials:
    def test_valid_credentials(self):
        acl = _make_acl()
        user = acl.users.create_user("ana@example.com", "secret", "ANALYST")
        assert acl.users.verify_credentials("ana@example.com", "secret") == user

    def test_wrong_password(self):
        acl = _make_acl()
        acl.users.create_user("ana@example.com", "secret", "ANALYST")
        assert acl.users.verify_credentials("ana@example.com", "Secret") is None

    def test_unknown_email(self):
        assert _make_acl().users.verify_credentials("x@example.com", "pw") is None

    def test_disabled_user_fails(self):
        acl = _make_acl()
        user = acl.users.create_user("ana@example.com", "secret", "ANALYST")
        acl.users.set_enabled(user.id, False)
        assert acl.users.verify_credentials("ana@example.com", "secret") is None

    def test_set_password(self):
        acl = _make_acl()
        user = acl.users.create_user("ana@example.com", "old", "ANALYST")
        acl.users.set_password(user.id, "new")
        assert acl.users.verify_credentials("ana@example.com", "old") is None
        assert acl.users.verify_credentials("ana@example.com", "new") is not None

    def test_overlong_password_fails_login(self):
        acl = _make_acl()
        acl.users.create_user("ana@example.com", "secret", "ANALYST")
        assert acl.users.verify_credentials("ana@example.com", "x" * 100) is None

    def test_overlong_password_rejected_on_write(self):
        acl = _make_acl()
        with pytest.raises(InvalidInputError, match="72 bytes"):
            acl.users.create_user("ana@example.com", "y" * 100, "ANALYST")
        assert acl.users.find_by_email("ana@example.com") is None

        user = acl.users.create_user("ana@example.com", "secret", "ANALYST")
        with pytest.raises(InvalidInputError, match="72 bytes"):
            acl.users.set_password(user.id, "\u00e9" * 37)
        assert acl.users.verify_credentials("ana@example.com", "secret") is not None


# ---------------------------------------------------------------------------
# 3. Role and status changes
# ---------------------------------------------------------------------------

class TestUserChanges:
    def test_set_role(self):
        acl = _make_acl()
        user = acl.users.create_user("ana@example.com", "pw", "ANALYST")
        assert acl.users.set_role(user.id, "SUPERVISOR").role == "SUPERVISOR"

    def test_set_role_to_unknown_rejected(self):
        acl = _make_acl()
        user = acl.users.create_user("ana@example.com", "pw", "ANALYST")
        with pytest.raises(InvalidInputError):
            acl.users.set_role(user.id, "GHOST")
        assert acl.users.get_user(user.id).role == "ANALYST"

    def test_toggle_enabled(self):
        acl = _make_acl()
        user = acl.users.create_user("ana@example.com", "pw", "ANALYST")
        assert acl.users.set_enabled(user.id, False).enabled is False
        assert acl.users.set_enabled(user.id, True).enabled is True

    def test_set_enabled_validates_flag(self):
        acl = _make_acl()
        user = acl.users.create_user("ana@example.com", "pw", "ANALYST")
        assert acl.users.set_enabled(user.id, "false").enabled is False
        with pytest.raises(InvalidInputError):
            acl.users.set_enabled(user.id, "maybe")
        assert acl.users.get_user(user.id).enabled is False

    def test_delete_user(self):
        acl = _make_acl()
        user = acl.users.create_user("ana@example.com", "pw", "ANALYST")
        acl.users.delete_user(user.id)
        assert acl.users.find_by_email("ana@example.com") is None

    def test_delete_missing_user(self):
        with pytest.raises(NotFoundError):
            _make_acl().users.delete_user("nope")


# ---------------------------------------------------------------------------
# 4. Protected identities
# ---------------------------------------------------------------------------

class TestProtectedIdentity:
    def test_protected_user_cannot_be_disabled(self):
        acl = _make_acl()
        admin = _make_admin(acl)
        with pytest.raises(ProtectedIdentityError, match="cannot be disabled"):
            acl.users.set_enabled(admin.id, False)
        assert acl.users.get_user(admin.id).enabled is True

    def test_protected_user_cannot_be_deleted(self):
        acl = _make_acl()
        admin = _make_admin(acl)
        with pytest.raises(ProtectedIdentityError, match="cannot be deleted"):
            acl.users.delete_user(admin.id)
        assert len(acl.users) == 1

    def test_protected_user_cannot_change_role(self):
        acl = _make_acl()
        admin = _make_admin(acl)
        with pytest.raises(ProtectedIdentityError):
            acl.users.set_role(admin.id, "ANALYST")
        assert acl.users.get_user(admin.id).role == "ADMIN"

    def test_protected_user_may_be_re_enabled_and_keep_role(self):
        acl = _make_acl()
        admin = _make_admin(acl)
        assert acl.users.set_enabled(admin.id, True).enabled is True
        assert acl.users.set_role(admin.id, "ADMIN").role == "ADMIN"

    def test_protection_is_not_tied_to_email_or_role(self):
        acl = _make_acl()
        _make_admin(acl)
        other_admin = acl.users.create_user("ops@example.com", "pw", "ADMIN")
        acl.users.set_enabled(other_admin.id, False)
        guarded = acl.users.create_user("lead@example.com", "pw", "SUPERVISOR", is_protected=True)
        with pytest.raises(ProtectedIdentityError):
            acl.users.set_enabled(guarded.id, False)

    def test_protected_error_is_distinguishable(self):
        acl = _make_acl()
        admin = _make_admin(acl)
        with pytest.raises(PermissionError) as excinfo:
            acl.users.set_enabled(admin.id, False)
        assert isinstance(excinfo.value, ProtectedIdentityError)
        assert excinfo.value.email == "root@example.com"


# ---------------------------------------------------------------------------
# 5. Propagation
# ---------------------------------------------------------------------------

class TestUserPropagation:
    def test_mutations_publish_and_rejections_do_not(self):
        acl = _make_acl()
        admin = _make_admin(acl)
        events = []
        acl.channel.subscribe(lambda: events.append(1))

        user = acl.users.create_user("ana@example.com", "pw", "ANALYST")
        acl.users.set_enabled(user.id, False)
        assert len(events) == 2

        with pytest.raises(ProtectedIdentityError):
            acl.users.set_enabled(admin.id, False)
        assert len(events) == 2
