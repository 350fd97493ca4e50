from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Garante que o pacote gateway seja importável durante os testes locais
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from gateway.core import config as core_config  # noqa: E402
from gateway.core.security import generate_code, hash_password, mask_payload, verify_password  # noqa: E402
from gateway.core.utils import absolute_url, to_int  # noqa: E402
from gateway.domain.accounts import (  # noqa: E402
    UNKNOWN_ERROR,
    Currency,
    RegistrationResult,
    TokenPurchaseRequest,
    TokenPurchaseResult,
)
from gateway.domain.phones import is_valid_phone, normalize_remotejid  # noqa: E402


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("API_BASE_URL", "https://api.example.com/v1/")
    monkeypatch.setenv("SERVICE_KEY", "k")
    monkeypatch.setenv("ACCOUNT_BACKEND", "TABLE")
    monkeypatch.setenv("REQUEST_TIMEOUT_SECONDS", "nope")
    core_config.get_settings.cache_clear()
    try:
        settings = core_config.get_settings()
        assert settings.base_url == "https://api.example.com/v1"
        assert settings.service_key == "k"
        assert settings.account_backend == "table"
        assert settings.request_timeout_seconds == 15.0
    finally:
        core_config.get_settings.cache_clear()


def test_password_hashing_roundtrip():
    stored = hash_password("hunter22")

    assert stored.startswith("argon2$")
    assert verify_password("hunter22", stored)
    assert not verify_password("hunter23", stored)
    assert not verify_password("x", None)


def test_mask_payload_hides_password():
    payload = {"phone": "57300", "password": "secret"}

    assert mask_payload(payload) == {"phone": "57300", "password": "***"}
    assert payload["password"] == "secret"


def test_mask_payload_hides_session_tokens():
    masked = mask_payload({"phone": "57300", "session_token": "abc", "token": "def", "amount": 5})

    assert masked == {"phone": "57300", "session_token": "***", "token": "***", "amount": 5}


def test_generate_code_is_numeric():
    code = generate_code()

    assert len(code) == 6
    assert code.isdigit()


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("573001234567@s.whatsapp.net", "573001234567"),
        ("+57 (300) 123-4567", "573001234567"),
        ("", ""),
        (None, ""),
    ],
)
def test_normalize_remotejid(raw, expected):
    assert normalize_remotejid(raw) == expected


def test_is_valid_phone():
    assert is_valid_phone("+57 300 123 4567")
    assert not is_valid_phone("123")


def test_absolute_url_and_to_int():
    assert absolute_url("register", "https://x.test/api/") == "https://x.test/api/register"
    assert absolute_url("https://hook.test/a", "https://x.test") == "https://hook.test/a"
    assert to_int("150") == 150
    assert to_int("", default=None) is None
    assert to_int(True, default=0) == 0


def test_currency_parse():
    assert Currency.parse("cop") is Currency.COP
    with pytest.raises(ValueError):
        Currency.parse("EUR")


def test_results_only_carry_error_on_failure():
    ok = RegistrationResult.ok()
    failed = TokenPurchaseResult.fail(None)

    assert ok.success is True and ok.error is None
    assert failed.success is False and failed.error == UNKNOWN_ERROR
    assert failed.tokens_added is None


def test_purchase_payload_omits_missing_phone():
    payload = TokenPurchaseRequest(amount=10, currency=Currency.USD).to_payload()

    assert payload == {"amount": 10, "currency": "USD"}
