"""RequestContext — the explicit Tier 1 carrier.

One context per request/response cycle. It holds the cookies the client
sent and the cookie mutations the handler made, so the sync layer never
reaches for framework globals and can be unit-tested without HTTP.

Reads see this request's own writes: after set_cookie() the new value is
returned by get_cookie(); after delete_cookie() the cookie reads as absent.
apply() copies the pending mutations onto an outgoing Starlette response.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass

from starlette.requests import Request
from starlette.responses import Response

from pressograph.config import settings
from pressograph.preferences.signing import CookieSigner

COOKIE_PATH = "/"
COOKIE_SAMESITE = "lax"


@dataclass(frozen=True)
class CookieMutation:
    name: str
    value: str | None  # None means delete
    max_age: int


class RequestContext:
    """Request-scoped cookie state plus the request id used for event correlation."""

    def __init__(
        self,
        cookies: Mapping[str, str] | None = None,
        *,
        signer: CookieSigner | None = None,
        secure: bool | None = None,
        max_age: int | None = None,
        request_id: str | None = None,
    ) -> None:
        self._incoming = dict(cookies or {})
        self._signer = signer or CookieSigner(settings.cookie_secret)
        self.secure = settings.is_production if secure is None else secure
        self.max_age = max_age if max_age is not None else settings.cookie_max_age
        self.request_id = request_id or str(uuid.uuid4())
        self._pending: dict[str, CookieMutation] = {}

    @classmethod
    def from_request(cls, request: Request, signer: CookieSigner | None = None) -> "RequestContext":
        return cls(
            request.cookies,
            signer=signer,
            request_id=request.headers.get("x-request-id"),
        )

    # ── Tier 1 access ─────────────────────────────────────────────────────

    def get_cookie(self, name: str) -> str | None:
        """Verified cookie value, or None if absent, deleted, or tampered with."""
        mutation = self._pending.get(name)
        if mutation is not None:
            return mutation.value
        return self._signer.unsign(name, self._incoming.get(name))

    def set_cookie(self, name: str, value: str) -> None:
        self._pending[name] = CookieMutation(name=name, value=value, max_age=self.max_age)

    def delete_cookie(self, name: str) -> None:
        self._pending[name] = CookieMutation(name=name, value=None, max_age=0)

    @property
    def pending(self) -> list[CookieMutation]:
        return list(self._pending.values())

    # ── Response ──────────────────────────────────────────────────────────

    def apply(self, response: Response) -> None:
        """Write pending cookie mutations onto the response."""
        for mutation in self._pending.values():
            if mutation.value is None:
                response.delete_cookie(
                    mutation.name,
                    path=COOKIE_PATH,
                    secure=self.secure,
                    samesite=COOKIE_SAMESITE,
                )
            else:
                response.set_cookie(
                    mutation.name,
                    self._signer.sign(mutation.name, mutation.value),
                    max_age=mutation.max_age,
                    path=COOKIE_PATH,
                    secure=self.secure,
                    httponly=False,
                    samesite=COOKIE_SAMESITE,
                )
