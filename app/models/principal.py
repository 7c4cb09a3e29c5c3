from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """Identity extracted from a validated admin bearer token.

    There are no admin accounts: the token is minted when the admin PIN
    is typed into the access-code field, and ``user_id`` is a fixed
    subject.  ``roles`` still drives the guards so the admin routes read
    like any other role-protected endpoint.
    """

    user_id: str
    roles: frozenset[str]

    def has_role(self, role: str) -> bool:
        return role in self.roles
