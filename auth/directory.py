"""
auth/directory.py -- The persistence capability the credential core depends on.

CredentialManager talks to storage only through this Protocol. auth/store.py
provides the SQLAlchemy implementation; tests substitute in-memory fakes.

Contract:
  create_user(user) -> User
      Persist a new record and return it with id and created_at assigned.
      Raise DuplicateRecordError when username or email is already taken.
      Uniqueness must be enforced atomically: of two concurrent inserts with
      the same username, exactly one succeeds.

  find_by_username_or_email(identifier) -> User
      Return the record whose username or email equals identifier. When one
      record matches by username and a different one by email, the username
      match wins. Raise RecordNotFoundError when nothing matches.

  Any other storage failure is raised as DirectoryError.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from auth.models import User


@runtime_checkable
class UserDirectory(Protocol):
    def create_user(self, user: User) -> User: ...

    def find_by_username_or_email(self, identifier: str) -> User: ...
