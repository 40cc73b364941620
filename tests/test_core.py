"""Tests for configuration, security helpers and the flow store."""

from datetime import timedelta

import jwt
import pytest
from pydantic import ValidationError

from zusplus.core.config import Settings
from zusplus.core.errors import ConfigurationError
from zusplus.core.security import SessionTokenService, hash_password, verify_password
from zusplus.identity import build_identity_provider
from zusplus.identity.supabase import SupabaseIdentityProvider
from zusplus.services import flow_store
from zusplus.services.flow_store import GateStore
from zusplus.services.mfa_gate import MfaSessionGate
from zusplus.utils.crypto_utils import SecretCipher
from zusplus.web.templates import format_pln
from tests.helpers import FakeProvider

SECRET = "test-secret-key-0123456789abcdef"


def test_password_hash_roundtrip():
    hashed = hash_password("Haslo123!")

    assert hashed.startswith("$argon2id$")
    assert verify_password("Haslo123!", hashed)
    assert not verify_password("haslo123!", hashed)


@pytest.mark.parametrize("stored", ["", "plain-text", "$2b$12$abcdefghijklmnopqrstuv"])
def test_verify_rejects_foreign_hashes(stored):
    assert not verify_password("Haslo123!", stored)


def test_session_token_roundtrip():
    tokens = SessionTokenService(SECRET)

    token = tokens.issue(user_id=7, session_id="abc", ttl=timedelta(minutes=5), email="a@zusplus.pl")
    payload = tokens.read(token)

    assert payload["sub"] == "7"
    assert payload["sid"] == "abc"
    assert payload["email"] == "a@zusplus.pl"


def test_session_token_rejects_expired_and_foreign():
    tokens = SessionTokenService(SECRET)

    expired = tokens.issue(user_id=7, session_id="abc", ttl=timedelta(seconds=-10))
    foreign = jwt.encode({"sub": "7", "sid": "abc", "exp": 4102444800}, SECRET, algorithm="HS256")
    other_key = SessionTokenService("another-secret-key-0123456789abcdef")

    assert tokens.read(expired) is None
    assert tokens.read(foreign) is None
    assert other_key.read(tokens.issue(user_id=7, session_id="abc", ttl=timedelta(minutes=5))) is None
    assert tokens.read(None) is None


def test_cipher_without_key_is_passthrough():
    cipher = SecretCipher(None)

    assert not cipher.enabled
    assert cipher.encrypt_text("JBSWY3DPEHPK3PXP") == "JBSWY3DPEHPK3PXP"


def test_cipher_reads_legacy_plaintext():
    cipher = SecretCipher("ZmFrZS1rZXktZm9yLXRlc3RzLW9ubHktMzJieXRlcyE=")

    assert cipher.decrypt_text("JBSWY3DPEHPK3PXP") == "JBSWY3DPEHPK3PXP"


def test_settings_require_long_secret():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, SECRET_KEY="short")


def test_supabase_backend_needs_credentials():
    settings = Settings(_env_file=None, SECRET_KEY=SECRET, IDENTITY_BACKEND="supabase")

    with pytest.raises(ConfigurationError):
        build_identity_provider(settings)


def test_supabase_backend_is_built():
    settings = Settings(
        _env_file=None,
        SECRET_KEY=SECRET,
        IDENTITY_BACKEND="supabase",
        SUPABASE_URL="https://project.supabase.co",
        SUPABASE_ANON_KEY="anon",
    )

    assert isinstance(build_identity_provider(settings), SupabaseIdentityProvider)


# ----------------------------------------------------------------------
# GateStore
# ----------------------------------------------------------------------
def _store(ttl=600) -> GateStore:
    provider = FakeProvider()
    return GateStore(lambda: MfaSessionGate(provider), ttl_seconds=ttl)


def test_store_create_get_discard():
    store = _store()

    flow_id, gate = store.create()

    assert store.get(flow_id) is gate
    assert store.get("unknown") is None
    assert store.get(None) is None

    store.discard(flow_id)
    assert store.get(flow_id) is None
    assert len(store) == 0


def test_store_flows_are_independent():
    store = _store()

    a, gate_a = store.create()
    b, gate_b = store.create()

    assert a != b
    assert gate_a is not gate_b


def test_store_expires_idle_flows(monkeypatch):
    now = [1000.0]
    monkeypatch.setattr(flow_store.time, "monotonic", lambda: now[0])
    store = _store(ttl=60)
    flow_id, _ = store.create()

    now[0] += 30
    assert store.get(flow_id) is not None

    # Zugriff verlängert die Lebensdauer
    now[0] += 59
    assert store.get(flow_id) is not None

    now[0] += 61
    assert store.get(flow_id) is None


def test_retired_flow_survives_only_the_grace_period(monkeypatch):
    now = [1000.0]
    monkeypatch.setattr(flow_store.time, "monotonic", lambda: now[0])
    provider = FakeProvider()
    store = GateStore(lambda: MfaSessionGate(provider), ttl_seconds=600, grace_seconds=30)
    flow_id, gate = store.create()

    store.retire(flow_id)

    now[0] += 20
    assert store.get(flow_id) is gate
    # Zugriff verlängert nicht mehr
    now[0] += 20
    assert store.get(flow_id) is None


@pytest.mark.parametrize(
    "value,expected",
    [(4890.4, "4 890 PLN"), (3100, "3 100 PLN"), (1234567, "1 234 567 PLN"), (950, "950 PLN"), (None, "-")],
)
def test_pln_filter_uses_plain_spaces(value, expected):
    assert format_pln(value) == expected
