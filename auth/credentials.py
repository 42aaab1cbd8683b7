"""
auth/credentials.py -- Registration and password login.

CredentialManager owns the credential lifecycle: it validates registration
input, hashes the password, asks the directory to store the record and
verifies passwords at login. It holds no mutable state, so one instance can
serve every request thread in parallel.

Security design decisions:
  Uniform conflicts: the directory reports which unique column collided
       (DuplicateRecordError.field). That detail is logged and then dropped --
       the caller always gets the same ConflictError, so registration cannot
       be used to probe which usernames or emails exist.

  Uniform login failures: "no such identity" and "wrong password" both raise
       the same UnauthorizedError. For an unknown identifier bcrypt still runs
       against a dummy hash of the same cost, so response time does not reveal
       whether the identifier exists either.

  Plaintext handling: the password is only ever passed to validate_password,
       hash_password and verify_password. It is never logged or stored.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging

from auth.directory import UserDirectory
from auth.errors import (
    ConflictError,
    DirectoryError,
    DuplicateRecordError,
    InternalError,
    RecordNotFoundError,
    UnauthorizedError,
    ValidationError,
)
from auth.models import DEFAULT_ROLE, RegistrationInput, User
from auth.passwords import DEFAULT_ROUNDS, hash_password, validate_password, verify_password

logger = logging.getLogger("allin.auth")

_DUMMY_PASSWORD = "allin_timing_dummy"


def _is_utf8(value: str) -> bool:
    """Return False for text holding lone surrogates, which no database driver can bind."""
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def validate_registration(username: str, email: str, phone: str, password: str) -> None:
    """Raise ValidationError if any registration field is unacceptable.

    Runs before any hashing or I/O.
    """
    identity = (username, email, phone)
    if not all(isinstance(value, str) and value.strip() for value in identity):
        raise ValidationError("username, email, and phone are required")
    if not all(_is_utf8(value) for value in identity):
        raise ValidationError("username, email, and phone must be valid UTF-8 text")
    validate_password(password)


class CredentialManager:
    """Registers identities and authenticates them against stored credentials.

    Usage:
        manager = CredentialManager(UserStore(db_url))
        user = manager.register(RegistrationInput("alex", "alex@x.com", "+1555", "Password1"))
        same = manager.authenticate("alex", "Password1")
    """

    def __init__(
        self,
        directory: UserDirectory,
        *,
        default_role: str = DEFAULT_ROLE,
        default_balance: float = 0.0,
        rounds: int = DEFAULT_ROUNDS,
    ) -> None:
        self._directory = directory
        self._default_role = default_role
        self._default_balance = default_balance
        self._rounds = rounds
        # Same cost as real hashes so the unknown-identifier path takes as long
        # as a wrong-password check.
        self._dummy_hash = hash_password(_DUMMY_PASSWORD, rounds)

    def hash_password(self, password: str) -> str:
        """Hash password at this manager's cost factor. Raises InternalError on failure."""
        return hash_password(password, self._rounds)

    def register(self, fields: RegistrationInput) -> User:
        """Create a new identity.

        Raises ValidationError for bad input, ConflictError when the username
        or email is already registered, InternalError for hashing or storage
        failures.
        """
        validate_registration(fields.username, fields.email, fields.phone, fields.password)
        try:
            hashed = self.hash_password(fields.password)
        except InternalError:
            logger.exception("Password hashing failed during registration")
            raise

        candidate = User(
            username=fields.username.strip(),
            email=fields.email.strip(),
            phone=fields.phone.strip(),
            role=self._default_role,
            balance=self._default_balance,
            hashed_password=hashed,
        )
        try:
            created = self._directory.create_user(candidate)
        except DuplicateRecordError as exc:
            logger.info("Registration rejected: duplicate %s", exc.field or "unique field")
            raise ConflictError() from exc
        except DirectoryError as exc:
            logger.exception("Directory failure while creating user")
            raise InternalError("failed to create user") from exc

        logger.info("Registered user_id=%s", created.id)
        return created

    def authenticate(self, identifier: str, password: str) -> User:
        """Return the identity matching identifier if password is correct.

        Raises ValidationError when either value is empty or the identifier
        is not valid text, UnauthorizedError
        for an unknown identifier or a wrong password (indistinguishable),
        InternalError for storage failures.
        """
        if not isinstance(identifier, str) or not isinstance(password, str):
            raise ValidationError("identifier and password are required")
        identifier = identifier.strip()
        if not identifier or not password.strip():
            raise ValidationError("identifier and password are required")
        if not _is_utf8(identifier):
            raise ValidationError("identifier must be valid UTF-8 text")

        try:
            user = self._directory.find_by_username_or_email(identifier)
        except RecordNotFoundError:
            # Equalize timing -- do NOT return before running bcrypt.
            verify_password(password, self._dummy_hash)
            raise UnauthorizedError() from None
        except DirectoryError as exc:
            logger.exception("Directory failure while looking up identity")
            raise InternalError("failed to fetch user") from exc

        if not verify_password(password, user.hashed_password):
            raise UnauthorizedError()
        return user
