"""
REST surface over the table backend.

Serves the paths HttpAccountGateway targets in base-URL mode. Every endpoint
answers 200 with the operation result; callers branch on `success`.
"""
from __future__ import annotations

from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Request

from gateway.core.rate_limiter import rate_limit_ip
from gateway.domain.accounts import (
    SESSION_REQUIRED,
    CodeVerificationRequest,
    LoginRequest,
    LoginResult,
    RegistrationRequest,
    TokenPurchaseRequest,
    TokenPurchaseResult,
)
from gateway.services.table_gateway import TableAccountGateway

router = APIRouter(prefix="/api", tags=["accounts"])
_gateway: Optional[TableAccountGateway] = None


def configure_gateway(gateway: Optional[TableAccountGateway]) -> None:
    """Swap the backing gateway (tests, alternative settings)."""
    global _gateway
    _gateway = gateway


def _get_gateway() -> TableAccountGateway:
    global _gateway
    if _gateway is None:
        _gateway = TableAccountGateway()
    return _gateway


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization") or ""
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return None


async def _payload(request: Request) -> dict:
    try:
        data = await request.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


@router.post("/register")
async def register(request: Request):
    rate_limit_ip(request, "accounts:register", limit=10, window_seconds=300)
    payload = await _payload(request)
    result = await _get_gateway().register(RegistrationRequest.from_payload(payload))
    return asdict(result)


@router.post("/verify")
async def verify(request: Request):
    rate_limit_ip(request, "accounts:verify", limit=10, window_seconds=300)
    payload = await _payload(request)
    result = await _get_gateway().verify_code(CodeVerificationRequest.from_payload(payload))
    return asdict(result)


@router.post("/login")
async def login(request: Request):
    rate_limit_ip(request, "accounts:login", limit=10, window_seconds=60)
    payload = await _payload(request)
    result: LoginResult = await _get_gateway().login(LoginRequest.from_payload(payload))
    body = asdict(result)
    body["token"] = result.session_token
    return body


@router.post("/purchase")
async def purchase(request: Request):
    payload = await _payload(request)
    try:
        purchase_request = TokenPurchaseRequest.from_payload(payload)
    except ValueError as exc:
        return asdict(TokenPurchaseResult.fail(str(exc)))
    gateway = _get_gateway()
    token = purchase_request.session_token or _bearer_token(request)
    # Without a phone the gateway answers MISSING_PHONE before any lookup.
    if purchase_request.phone and not await gateway.authorize_purchase(token, purchase_request.phone):
        return asdict(TokenPurchaseResult.fail("Sesión inválida o expirada", message=SESSION_REQUIRED))
    result = await gateway.purchase_tokens(purchase_request)
    body = asdict(result)
    body["tokensAdded"] = result.tokens_added
    body["credits"] = result.balance
    return body

