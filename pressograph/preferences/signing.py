"""HMAC signing for Tier 1 cookies.

Cookie format:  <value>.<base64url(hmac_sha256(secret, "<name>|<value>"))>

The cookie name is part of the signed message, so a signed theme cookie
cannot be replayed as a locale cookie. Anything that fails verification
unsigns to None and the read path treats the cookie as absent.
"""

from __future__ import annotations

import base64
import hashlib
import hmac


class CookieSigner:
    """Signs and verifies short cookie values."""

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("CookieSigner requires a non-empty secret")
        self._secret = secret.encode("utf-8")

    def _signature(self, name: str, value: str) -> str:
        digest = hmac.new(
            self._secret,
            f"{name}|{value}".encode("utf-8"),
            hashlib.sha256,
        ).digest()
        return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")

    def sign(self, name: str, value: str) -> str:
        return f"{value}.{self._signature(name, value)}"

    def unsign(self, name: str, token: str | None) -> str | None:
        """Return the value if the signature verifies, else None."""
        if not token or "." not in token:
            return None
        value, _, signature = token.rpartition(".")
        if not value:
            return None
        expected = self._signature(name, value).encode("ascii")
        if not hmac.compare_digest(signature.encode("utf-8"), expected):
            return None
        return value
