from __future__ import annotations

import asyncio
import sys
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Garante que o pacote gateway seja importável durante os testes locais
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from gateway.core import config as core_config  # noqa: E402
from gateway.core.security import is_hashed  # noqa: E402
from gateway.db import models  # noqa: E402
from gateway.db import session as db_session  # noqa: E402
from gateway.domain.accounts import (  # noqa: E402
    CODE_EXPIRED,
    CODE_LOCKED,
    CODE_MISMATCH,
    CODE_RESENT,
    LOGIN_INVALID,
    LOGIN_UNVERIFIED,
    REGISTER_DUPLICATE,
    USER_NOT_FOUND,
    VERIFY_ALREADY,
    VERIFY_REJECTED,
    CodeVerificationRequest,
    Currency,
    LoginRequest,
    RegistrationRequest,
    TokenPurchaseRequest,
)
from gateway.repositories.sql_repository import SQLRepository  # noqa: E402
from gateway.services.table_gateway import MAX_CODE_ATTEMPTS, TableAccountGateway  # noqa: E402


@pytest.fixture()
def db_env(tmp_path, monkeypatch):
    """Configura um SQLite temporário e reseta caches de settings/engine."""
    db_file = tmp_path / "test.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_file}")
    monkeypatch.setenv("ACCOUNT_BACKEND", "table")
    core_config.get_settings.cache_clear()
    db_session.get_engine.cache_clear()
    db_session._get_sessionmaker.cache_clear()  # type: ignore[attr-defined]

    engine = db_session.get_engine()
    models.Base.metadata.drop_all(bind=engine)
    models.Base.metadata.create_all(bind=engine)

    yield core_config.get_settings()

    models.Base.metadata.drop_all(bind=engine)
    engine.dispose()
    core_config.get_settings.cache_clear()
    db_session.get_engine.cache_clear()
    db_session._get_sessionmaker.cache_clear()  # type: ignore[attr-defined]


class CodeOutbox:
    """Captura os códigos que seriam enviados por e-mail."""

    def __init__(self, delivered: bool = True):
        self.delivered = delivered
        self.sent: dict[str, str] = {}

    def __call__(self, email: str, code: str) -> bool:
        self.sent[email] = code
        return self.delivered


@pytest.fixture()
def outbox():
    return CodeOutbox()


@pytest.fixture()
def gw(db_env, outbox):
    return TableAccountGateway(db_env, code_sender=outbox)


def _registration(**overrides) -> RegistrationRequest:
    data = dict(
        name="Ana",
        lastname="Rojas",
        email="ana@example.com",
        remotejid="573001234567@s.whatsapp.net",
        password="s3cret-pass",
    )
    data.update(overrides)
    return RegistrationRequest(**data)


def _register_and_verify(gw: TableAccountGateway, outbox: CodeOutbox) -> None:
    assert asyncio.run(gw.register(_registration())).success
    code = outbox.sent["ana@example.com"]
    assert asyncio.run(gw.verify_code(CodeVerificationRequest(code=code, email="ana@example.com"))).success


def test_register_creates_pending_user_with_hashed_password(gw, outbox):
    result = asyncio.run(gw.register(_registration()))

    assert result.success is True
    assert result.message
    user = SQLRepository().get_user_by_email("ana@example.com")
    assert user is not None
    assert user.remotejid == "573001234567"
    assert user.status == models.STATUS_PENDING
    assert user.credits == "0"
    assert user.pushname == "Ana Rojas"
    assert is_hashed(user.password)
    assert user.password != "s3cret-pass"
    assert len(outbox.sent["ana@example.com"]) == 6


def test_register_succeeds_even_when_code_delivery_fails(db_env):
    gw = TableAccountGateway(db_env, code_sender=CodeOutbox(delivered=False))

    assert asyncio.run(gw.register(_registration())).success is True


@pytest.mark.parametrize(
    "overrides",
    [
        {"remotejid": "573009999999"},
        {"email": "other@example.com", "remotejid": "+57 300 123 4567"},
    ],
)
def test_register_rejects_duplicate_email_or_phone(gw, outbox, overrides):
    _register_and_verify(gw, outbox)

    result = asyncio.run(gw.register(_registration(**overrides)))

    assert result.success is False
    assert result.message == REGISTER_DUPLICATE
    assert result.error


def test_verify_code_for_unknown_email(gw):
    result = asyncio.run(gw.verify_code(CodeVerificationRequest(code="123456", email="ghost@example.com")))

    assert result.success is False
    assert result.message == USER_NOT_FOUND


def test_verify_code_wrong_then_right(gw, outbox):
    asyncio.run(gw.register(_registration()))
    code = outbox.sent["ana@example.com"]
    wrong = "000000" if code != "000000" else "111111"

    bad = asyncio.run(gw.verify_code(CodeVerificationRequest(code=wrong, email="ana@example.com")))
    assert bad.success is False
    assert bad.message == VERIFY_REJECTED

    good = asyncio.run(gw.verify_code(CodeVerificationRequest(code=code, email="ana@example.com")))
    assert good.success is True
    assert SQLRepository().get_user_by_email("ana@example.com").status == models.STATUS_VERIFIED
    assert SQLRepository().get_latest_verify_code("ana@example.com") is None

    again = asyncio.run(gw.verify_code(CodeVerificationRequest(code=code, email="ana@example.com")))
    assert again.success is True
    assert again.message == VERIFY_ALREADY


def test_verify_code_expired(db_env, outbox):
    gw = TableAccountGateway(replace(db_env, verification_code_ttl_seconds=60), code_sender=outbox)
    asyncio.run(gw.register(_registration()))
    code = outbox.sent["ana@example.com"]

    created = datetime.now(timezone(timedelta(hours=-5)))
    assert gw._code_expired(created, gw._now()) is False
    assert gw._code_expired(created - timedelta(minutes=5), gw._now()) is True

    gw._now = lambda: int(datetime.now(timezone.utc).timestamp()) + 3600  # type: ignore[method-assign]
    result = asyncio.run(gw.verify_code(CodeVerificationRequest(code=code, email="ana@example.com")))
    assert result.success is False
    assert result.message == VERIFY_REJECTED
    assert "expir" in result.error


def test_login_requires_verified_account_and_correct_password(gw, outbox):
    asyncio.run(gw.register(_registration()))

    unverified = asyncio.run(gw.login(LoginRequest(phone="573001234567", password="s3cret-pass")))
    assert unverified.success is False
    assert unverified.message == LOGIN_UNVERIFIED

    code = outbox.sent["ana@example.com"]
    asyncio.run(gw.verify_code(CodeVerificationRequest(code=code, email="ana@example.com")))

    wrong = asyncio.run(gw.login(LoginRequest(phone="573001234567", password="nope")))
    assert wrong.success is False
    assert wrong.message == LOGIN_INVALID
    assert wrong.session_token is None

    ok = asyncio.run(gw.login(LoginRequest(phone="+57 300 123 4567", password="s3cret-pass")))
    assert ok.success is True
    assert ok.session_token
    user = SQLRepository().get_session_user(ok.session_token)
    assert user is not None and user.email == "ana@example.com"


def test_login_unknown_phone(gw):
    result = asyncio.run(gw.login(LoginRequest(phone="573000000000", password="x")))

    assert result.success is False
    assert result.message == USER_NOT_FOUND


def test_login_rehashes_legacy_plaintext_password(gw):
    repo = SQLRepository()
    repo.create_user(email="old@example.com", remotejid="573005550000", password_hash="legacy", status=models.STATUS_VERIFIED)

    result = asyncio.run(gw.login(LoginRequest(phone="573005550000", password="legacy")))

    assert result.success is True
    assert is_hashed(repo.get_user_by_email("old@example.com").password)


def test_purchase_adds_to_text_credits(gw):
    repo = SQLRepository()
    repo.create_user(email="buyer@example.com", remotejid="573001112233", password_hash="x", credits="100")

    result = asyncio.run(gw.purchase_tokens(TokenPurchaseRequest(amount=50, currency=Currency.USD, phone="573001112233")))

    assert result.success is True
    assert result.tokens_added == 50
    assert result.balance == 150
    assert repo.get_user_by_remotejid("573001112233").credits == "150"


def test_purchase_without_phone_touches_nothing(gw, monkeypatch):
    def _explode(*args, **kwargs):
        raise AssertionError("repository should not be called")

    monkeypatch.setattr(gw.repository, "add_credits", _explode)

    result = asyncio.run(gw.purchase_tokens(TokenPurchaseRequest(amount=50, currency="USD", phone=None)))

    assert result.success is False
    assert result.error == "Falta el teléfono del usuario"


def test_purchase_for_unknown_user(gw):
    result = asyncio.run(gw.purchase_tokens(TokenPurchaseRequest(amount=10, currency=Currency.COP, phone="573009990000")))

    assert result.success is False
    assert result.message == USER_NOT_FOUND


def test_database_errors_become_failure_results(gw, monkeypatch):
    from sqlalchemy.exc import OperationalError

    def _down(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    monkeypatch.setattr(gw.repository, "get_user_by_remotejid", _down)

    result = asyncio.run(gw.login(LoginRequest(phone="573001234567", password="pw")))

    assert result.success is False
    assert "database is locked" in result.error


def test_full_flow(gw, outbox):
    _register_and_verify(gw, outbox)

    login = asyncio.run(gw.login(LoginRequest(phone="573001234567", password="s3cret-pass")))
    purchase = asyncio.run(gw.purchase_tokens(TokenPurchaseRequest(amount=25, currency=Currency.COP, phone="573001234567")))

    assert login.success and purchase.success
    assert purchase.balance == 25


def _expire_codes(gw: TableAccountGateway) -> None:
    gw._now = lambda: int(datetime.now(timezone.utc).timestamp()) + 3600  # type: ignore[method-assign]


def test_register_replaces_pending_account_after_code_expired(gw, outbox):
    assert asyncio.run(gw.register(_registration())).success
    first_code = outbox.sent["ana@example.com"]
    first_id = SQLRepository().get_user_by_email("ana@example.com").id

    _expire_codes(gw)
    expired = asyncio.run(gw.verify_code(CodeVerificationRequest(code=first_code, email="ana@example.com")))
    assert expired.success is False
    assert expired.error == CODE_EXPIRED

    again = asyncio.run(gw.register(_registration(password="n3w-pass")))
    assert again.success is True
    user = SQLRepository().get_user_by_email("ana@example.com")
    assert user.id != first_id
    assert user.status == models.STATUS_PENDING

    del gw._now
    fresh = outbox.sent["ana@example.com"]
    assert asyncio.run(gw.verify_code(CodeVerificationRequest(code=fresh, email="ana@example.com"))).success
    login = asyncio.run(gw.login(LoginRequest(phone="573001234567", password="n3w-pass")))
    assert login.success is True


def test_register_replaces_pending_owners_of_email_and_phone(gw, outbox):
    asyncio.run(gw.register(_registration()))
    asyncio.run(gw.register(_registration(email="other@example.com", remotejid="573009999999")))

    result = asyncio.run(gw.register(_registration(remotejid="573009999999")))

    assert result.success is True
    repo = SQLRepository()
    assert repo.get_user_by_email("other@example.com") is None
    assert repo.get_user_by_remotejid("573009999999").email == "ana@example.com"
    assert repo.get_user_by_remotejid("573001234567") is None


def test_register_maps_integrity_error_to_duplicate(gw, monkeypatch):
    from sqlalchemy.exc import IntegrityError

    def _race(**kwargs):
        raise IntegrityError("INSERT INTO users", {}, Exception("UNIQUE constraint failed: users.email"))

    monkeypatch.setattr(gw.repository, "create_user", _race)

    result = asyncio.run(gw.register(_registration()))

    assert result.success is False
    assert result.message == REGISTER_DUPLICATE


def test_login_resends_code_when_pending_code_expired(gw, outbox):
    asyncio.run(gw.register(_registration()))
    first_code = outbox.sent["ana@example.com"]
    _expire_codes(gw)
    asyncio.run(gw.verify_code(CodeVerificationRequest(code=first_code, email="ana@example.com")))
    del gw._now
    outbox.sent.clear()

    login = asyncio.run(gw.login(LoginRequest(phone="573001234567", password="s3cret-pass")))

    assert login.success is False
    assert login.message == LOGIN_UNVERIFIED
    assert login.error == CODE_RESENT
    fresh = outbox.sent["ana@example.com"]
    assert asyncio.run(gw.verify_code(CodeVerificationRequest(code=fresh, email="ana@example.com"))).success
    assert asyncio.run(gw.login(LoginRequest(phone="573001234567", password="s3cret-pass"))).success


def test_login_keeps_live_code_instead_of_resending(gw, outbox):
    asyncio.run(gw.register(_registration()))
    code = outbox.sent["ana@example.com"]
    outbox.sent.clear()

    login = asyncio.run(gw.login(LoginRequest(phone="573001234567", password="s3cret-pass")))

    assert login.success is False
    assert login.error != CODE_RESENT
    assert outbox.sent == {}
    assert SQLRepository().get_latest_verify_code("ana@example.com").code == code


def test_login_with_wrong_password_does_not_resend(gw, outbox):
    asyncio.run(gw.register(_registration()))
    SQLRepository().delete_verify_codes_for_email("ana@example.com")
    outbox.sent.clear()

    result = asyncio.run(gw.login(LoginRequest(phone="573001234567", password="nope")))

    assert result.message == LOGIN_INVALID
    assert outbox.sent == {}


def test_verify_code_locks_after_repeated_mismatches(gw, outbox):
    asyncio.run(gw.register(_registration()))
    code = outbox.sent["ana@example.com"]
    wrong = "000000" if code != "000000" else "111111"

    errors = [
        asyncio.run(gw.verify_code(CodeVerificationRequest(code=wrong, email="ana@example.com"))).error
        for _ in range(MAX_CODE_ATTEMPTS)
    ]

    assert errors[:-1] == [CODE_MISMATCH] * (MAX_CODE_ATTEMPTS - 1)
    assert errors[-1] == CODE_LOCKED
    late = asyncio.run(gw.verify_code(CodeVerificationRequest(code=code, email="ana@example.com")))
    assert late.success is False
    assert late.message == VERIFY_REJECTED
    assert SQLRepository().get_user_by_email("ana@example.com").status == models.STATUS_PENDING


def _operational_error(*args, **kwargs):
    from sqlalchemy.exc import OperationalError

    raise OperationalError("SELECT 1", {}, Exception("database is locked"))


@pytest.mark.parametrize(
    "method, call",
    [
        ("find_existing_users", lambda gw: gw.register(_registration())),
        ("get_user_by_email", lambda gw: gw.verify_code(CodeVerificationRequest(code="123456", email="ana@example.com"))),
        ("add_credits", lambda gw: gw.purchase_tokens(TokenPurchaseRequest(amount=5, currency=Currency.USD, phone="573001234567"))),
    ],
)
def test_database_errors_on_every_operation(gw, monkeypatch, method, call):
    monkeypatch.setattr(gw.repository, method, _operational_error)

    result = asyncio.run(call(gw))

    assert result.success is False
    assert result.message
    assert "database is locked" in result.error


def test_authorize_purchase_checks_session_owner(gw, outbox):
    _register_and_verify(gw, outbox)
    token = asyncio.run(gw.login(LoginRequest(phone="573001234567", password="s3cret-pass"))).session_token

    assert asyncio.run(gw.authorize_purchase(token, "+57 300 123 4567")) is True
    assert asyncio.run(gw.authorize_purchase(token, "573009999999")) is False
    assert asyncio.run(gw.authorize_purchase("forged", "573001234567")) is False
    assert asyncio.run(gw.authorize_purchase(None, "573001234567")) is False


def test_authorize_purchase_fails_closed_on_database_error(gw, monkeypatch):
    monkeypatch.setattr(gw.repository, "get_session_user", _operational_error)

    assert asyncio.run(gw.authorize_purchase("any-token", "573001234567")) is False
