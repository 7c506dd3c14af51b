"""
User Directory.

Associates each user identity with exactly one role.  The Access Evaluator
takes its primary input (a role) from here.

Passwords are stored as bcrypt hashes.  Issuing sessions and tokens belongs
to the login collaborator; this module only answers "does this email and
password belong to an enabled user".

Protected identities (``is_protected=True``, set by the seed for the
bootstrap administrator) cannot be disabled, deleted or moved off their
role.  Such attempts raise ``ProtectedIdentityError`` instead of being
silently ignored.
"""

from __future__ import annotations

import uuid
from typing import Optional

import bcrypt
from loguru import logger
from pydantic import TypeAdapter

from routegate.config import MAX_PASSWORD_BYTES
from routegate.errors import (
    DuplicateUserError,
    InvalidInputError,
    NotFoundError,
    ProtectedIdentityError,
    invalid_input,
    require_text,
)
from routegate.models import User
from routegate.store import RegistryStore, _Draft

_FLAG = TypeAdapter(bool)


class UserDirectory:
    """CRUD and credential checks over the users held in a ``RegistryStore``."""

    def __init__(self, store: RegistryStore) -> None:
        self._store = store

    # -- queries --

    def list_users(self) -> tuple[User, ...]:
        """Return all users in creation order."""
        return tuple(self._store.state.users.values())

    def get_user(self, user_id: str) -> User:
        """Return the user with ``user_id``.

        Raises:
            NotFoundError: If no user has that id.
        """
        try:
            return self._store.state.users[user_id]
        except KeyError:
            raise NotFoundError(f"No user registered with id '{user_id}'") from None

    def find_by_email(self, email: str) -> Optional[User]:
        for user in self._store.state.users.values():
            if user.email == email:
                return user
        return None

    def search(self, term: str) -> tuple[User, ...]:
        """Case-insensitive substring match on email, as the admin list filters."""
        needle = term.lower()
        return tuple(u for u in self._store.state.users.values() if needle in u.email.lower())

    def verify_credentials(self, email: str, password: str) -> Optional[User]:
        """Return the user if ``email``/``password`` match an enabled account.

        Unknown emails, disabled users and wrong passwords all return None.
        """
        user = self.find_by_email(email)
        if user is None:
            logger.warning(f"Login failed: user '{email}' not found")
            return None
        if not user.enabled:
            logger.warning(f"Login failed: user '{email}' is disabled")
            return None
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            logger.warning(f"Login failed: overlong password for '{email}'")
            return None
        if not user.password_hash or not bcrypt.checkpw(
            password.encode("utf-8"), user.password_hash.encode("utf-8")
        ):
            logger.warning(f"Login failed: invalid password for '{email}'")
            return None
        return user

    # -- mutations --

    def create_user(
        self,
        email: str,
        password: str,
        role: str,
        enabled: bool = True,
        is_protected: bool = False,
        user_id: Optional[str] = None,
    ) -> User:
        """Add a user.

        Raises:
            InvalidInputError: If email, password or role is empty, the
                password is over 72 bytes, the email is malformed, or the role
                is not registered.
            DuplicateUserError: If the email (or explicit id) is taken.
        """
        require_text(email, "email")
        require_text(role, "role")
        password_hash = self._hash(password)
        with invalid_input():
            user = User(
                id=user_id or str(uuid.uuid4()),
                email=email,
                password_hash=password_hash,
                role=role,
                enabled=enabled,
                is_protected=is_protected,
            )

        with self._store.transaction() as draft:
            if any(u.email == email for u in draft.users.values()):
                raise DuplicateUserError(f"Email '{email}' already registered.")
            if user.id in draft.users:
                raise DuplicateUserError(f"User id '{user.id}' already registered.")
            self._check_role(draft, role)
            draft.users[user.id] = user
            draft.changed = True

        logger.info(f"User created: {email} ({user.id}) with role: {role}")
        return user

    def set_role(self, user_id: str, role: str) -> User:
        """Assign a different role to a user.

        Raises:
            NotFoundError: If no user has that id.
            InvalidInputError: If the role is empty or not registered.
            ProtectedIdentityError: If the user is protected and the role differs.
        """
        require_text(role, "role")
        with self._store.transaction() as draft:
            current = self._require(draft, user_id)
            if current.is_protected and role != current.role:
                raise ProtectedIdentityError(current.email, "moved off its role")
            self._check_role(draft, role)
            user = current.model_copy(update={"role": role})
            draft.users[user_id] = user
            draft.changed = True

        logger.info(f"User role changed: {user.email} -> {role}")
        return user

    def set_enabled(self, user_id: str, enabled: bool) -> User:
        """Enable or disable a user.

        Raises:
            NotFoundError: If no user has that id.
            InvalidInputError: If ``enabled`` is not a boolean value.
            ProtectedIdentityError: If disabling a protected user.
        """
        with invalid_input():
            enabled = _FLAG.validate_python(enabled)
        with self._store.transaction() as draft:
            current = self._require(draft, user_id)
            if current.is_protected and not enabled:
                raise ProtectedIdentityError(current.email, "disabled")
            user = current.model_copy(update={"enabled": enabled})
            draft.users[user_id] = user
            draft.changed = True

        logger.info(f"User {'enabled' if user.enabled else 'disabled'}: {user.email}")
        return user

    def set_password(self, user_id: str, password: str) -> User:
        """Replace a user's password.

        Raises:
            NotFoundError: If no user has that id.
            InvalidInputError: If the password is empty or over 72 bytes.
        """
        password_hash = self._hash(password)
        with self._store.transaction() as draft:
            current = self._require(draft, user_id)
            user = current.model_copy(update={"password_hash": password_hash})
            draft.users[user_id] = user
            draft.changed = True

        logger.info(f"User password changed: {user.email}")
        return user

    def delete_user(self, user_id: str) -> None:
        """Remove a user.

        Raises:
            NotFoundError: If no user has that id.
            ProtectedIdentityError: If the user is protected.
        """
        with self._store.transaction() as draft:
            current = self._require(draft, user_id)
            if current.is_protected:
                raise ProtectedIdentityError(current.email, "deleted")
            del draft.users[user_id]
            draft.changed = True

        logger.info(f"User deleted: {current.email} ({user_id})")

    # -- helpers --

    def _hash(self, password: str) -> str:
        require_text(password, "password")
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise InvalidInputError(f"password must be at most {MAX_PASSWORD_BYTES} bytes.")
        return bcrypt.hashpw(
            password.encode("utf-8"),
            bcrypt.gensalt(rounds=self._store.settings.bcrypt_rounds),
        ).decode("utf-8")

    @staticmethod
    def _require(draft: _Draft, user_id: str) -> User:
        user = draft.users.get(user_id)
        if user is None:
            raise NotFoundError(f"No user registered with id '{user_id}'")
        return user

    @staticmethod
    def _check_role(draft: _Draft, role: str) -> None:
        if role not in draft.roles:
            raise InvalidInputError(f"Role '{role}' is not registered.")

    def __len__(self) -> int:
        return len(self._store.state.users)
