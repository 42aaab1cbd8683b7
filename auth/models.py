"""
auth/models.py -- Domain dataclasses for identity entities.

Pattern: Data class (pure data container, near-zero logic). Dataclasses own
domain shape; the directory and the credential manager do the work.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# Role labels. Carried on the record as an opaque string; nothing in the core
# grants or checks permissions based on them.
ROLE_PLAYER = "player"
ROLE_VIP = "vip-player"
ROLE_VVIP = "vvip-player"

DEFAULT_ROLE = ROLE_PLAYER


@dataclass
class User:
    """A registered identity.

    id and created_at are assigned by the directory at insert time and are
    None on records that have not been stored yet.

    hashed_password is the bcrypt encoding written by CredentialManager. It
    is excluded from repr() so the record can be logged safely, and from
    to_public() so it never leaves the service.

    balance is carried, not computed -- the core has no debit/credit logic.
    """

    username: str
    email: str
    phone: str
    hashed_password: str = field(default="", repr=False)
    role: str = DEFAULT_ROLE
    balance: float = 0.0
    id: int | None = None
    created_at: str | None = None

    def to_public(self) -> dict:
        """Return the outward-facing view of the record (no password hash)."""
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "phone": self.phone,
            "role": self.role,
            "balance": self.balance,
            "created_at": self.created_at,
        }


@dataclass
class RegistrationInput:
    """Fields submitted for a new registration.

    password is plaintext and transient: CredentialManager hashes it and drops
    the reference. repr=False keeps it out of logs and tracebacks.
    """

    username: str
    email: str
    phone: str
    password: str = field(repr=False)
