"""Session capability passed explicitly to whatever needs to know who is signed in."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class SessionContext:
    """Authentication gate and bearer token.

    User-scoped requests must not execute while ``is_authenticated`` is
    False.  The object is mutable so that the host can sign in/out without
    rebuilding the cache or the client that hold a reference to it.
    """

    access_token: str | None = None
    user_id: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.access_token)

    def sign_in(self, access_token: str, user_id: str | None = None) -> None:
        self.access_token = access_token
        self.user_id = user_id

    def sign_out(self) -> None:
        self.access_token = None
        self.user_id = None

    def auth_headers(self) -> dict[str, str]:
        if not self.access_token:
            return {}
        return {"Authorization": f"Bearer {self.access_token}"}
