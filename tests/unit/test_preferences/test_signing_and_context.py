"""Unit tests for CookieSigner and RequestContext (Tier 1)."""

from __future__ import annotations

import pytest
from starlette.responses import Response

from pressograph.preferences.context import RequestContext
from pressograph.preferences.signing import CookieSigner


@pytest.fixture
def signer() -> CookieSigner:
    return CookieSigner("unit-test-secret")


# ─────────────────────────────────────────────────────────────────────────────
# 1. CookieSigner
# ─────────────────────────────────────────────────────────────────────────────

def test_sign_keeps_value_readable(signer):
    token = signer.sign("theme", "dark")
    assert token.startswith("dark.")
    assert signer.unsign("theme", token) == "dark"


def test_signature_binds_cookie_name(signer):
    token = signer.sign("theme", "en")
    assert signer.unsign("locale", token) is None


def test_modified_value_fails_verification(signer):
    token = signer.sign("theme", "dark")
    forged = "light" + token[len("dark"):]
    assert signer.unsign("theme", forged) is None


def test_other_secret_fails_verification(signer):
    token = CookieSigner("another-secret").sign("theme", "dark")
    assert signer.unsign("theme", token) is None


@pytest.mark.parametrize("token", [None, "", "dark", ".sig", "dark.", "dark.Ω≈ç"])
def test_malformed_tokens_unsign_to_none(signer, token):
    assert signer.unsign("theme", token) is None


def test_empty_secret_rejected():
    with pytest.raises(ValueError):
        CookieSigner("")


# ─────────────────────────────────────────────────────────────────────────────
# 2. RequestContext
# ─────────────────────────────────────────────────────────────────────────────

def test_context_reads_signed_incoming_cookie(signer):
    ctx = RequestContext({"theme": signer.sign("theme", "dark")}, signer=signer)
    assert ctx.get_cookie("theme") == "dark"
    assert ctx.get_cookie("locale") is None


def test_context_ignores_unsigned_cookie(signer):
    ctx = RequestContext({"theme": "dark"}, signer=signer)
    assert ctx.get_cookie("theme") is None


def test_context_reads_its_own_writes(signer):
    ctx = RequestContext({"theme": signer.sign("theme", "dark")}, signer=signer)

    ctx.set_cookie("theme", "light")
    assert ctx.get_cookie("theme") == "light"

    ctx.delete_cookie("theme")
    assert ctx.get_cookie("theme") is None
    assert len(ctx.pending) == 1


def test_context_generates_request_id_when_missing(signer):
    a = RequestContext(signer=signer)
    b = RequestContext(signer=signer)
    assert a.request_id and b.request_id and a.request_id != b.request_id


def test_apply_sets_signed_cookie_with_attributes(signer):
    ctx = RequestContext(signer=signer, secure=True, max_age=31536000)
    ctx.set_cookie("theme", "dark")
    response = Response()

    ctx.apply(response)

    header = response.headers["set-cookie"]
    assert header.startswith(f"theme={signer.sign('theme', 'dark')}")
    assert "Max-Age=31536000" in header
    assert "Path=/" in header
    assert "SameSite=lax" in header
    assert "Secure" in header
    assert "HttpOnly" not in header


def test_apply_without_secure_flag(signer):
    ctx = RequestContext(signer=signer, secure=False)
    ctx.set_cookie("locale", "ru")
    response = Response()

    ctx.apply(response)

    assert "Secure" not in response.headers["set-cookie"]


def test_apply_deletes_cookie(signer):
    ctx = RequestContext({"theme": signer.sign("theme", "dark")}, signer=signer, secure=False)
    ctx.delete_cookie("theme")
    response = Response()

    ctx.apply(response)

    header = response.headers["set-cookie"]
    assert header.startswith('theme="";') or header.startswith("theme=;")
    assert "Max-Age=0" in header


def test_apply_with_no_mutations_sets_nothing(signer):
    response = Response()
    RequestContext(signer=signer).apply(response)
    assert "set-cookie" not in response.headers
