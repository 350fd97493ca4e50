"""
Webhook/REST adapter.

Each operation issues one JSON POST, either to a configured webhook URL or to
`{base_url}/{action}`, and maps the reply onto the operation's result.
"""

from __future__ import annotations

import json
from typing import Any, Optional
from urllib.parse import urlparse

import httpx

from gateway.core.config import Settings
from gateway.core.utils import absolute_url, to_int
from gateway.domain.accounts import (
    CODE_MISMATCH,
    VERIFY_REJECTED,
    CodeVerificationRequest,
    CodeVerificationResult,
    LoginRequest,
    LoginResult,
    RegistrationRequest,
    RegistrationResult,
    TokenPurchaseRequest,
    TokenPurchaseResult,
)
from gateway.services.account_gateway import AccountGateway, GatewayError, RemoteRejectedError

ACTION_REGISTER = "register"
ACTION_VERIFY = "verify"
ACTION_LOGIN = "login"
ACTION_PURCHASE = "purchase"


class InsecureTransportError(GatewayError):
    pass


class HttpAccountGateway(AccountGateway):
    """Forwards requests to webhook endpoints or to a REST API under `base_url`."""

    name = "http"
    transport_errors = (httpx.HTTPError, json.JSONDecodeError, UnicodeDecodeError)

    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(settings)
        self._transport = transport

    # -------------------------------------- plumbing --------------------------------------
    def endpoint(self, action: str) -> str:
        if action == ACTION_VERIFY and self.settings.verify_webhook_url:
            return self.settings.verify_webhook_url
        if self.settings.webhook_url:
            return self.settings.webhook_url
        return absolute_url(action, self.settings.base_url)

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        key = self.settings.service_key
        if key:
            headers["apikey"] = key
            headers["Authorization"] = f"Bearer {key}"
        return headers

    def _timeout(self) -> Optional[float]:
        timeout = self.settings.request_timeout_seconds
        return timeout if timeout and timeout > 0 else None

    def _ensure_secure(self, url: str, payload: dict) -> None:
        if not ({"password", "token"} & payload.keys()) or self.settings.app_env != "prod":
            return
        if urlparse(url).scheme != "https":
            raise InsecureTransportError("Las credenciales solo se envían por HTTPS")

    async def _post(self, action: str, payload: dict) -> dict:
        url = self.endpoint(action)
        self._ensure_secure(url, payload)
        body = {**payload, "action": action}
        self._log(f"{action} -> {url}")
        async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout()) as client:
            response = await client.post(url, headers=self._headers(), content=json.dumps(body))
        if not response.is_success:
            raise RemoteRejectedError(f"HTTP error! status: {response.status_code}")
        if not response.content.strip():
            return {}
        data = json.loads(response.content)
        # Webhook runners sometimes wrap the reply in a single-item list.
        if isinstance(data, list):
            data = data[0] if data else {}
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _remote_message(data: dict) -> Optional[str]:
        value = data.get("message") or data.get("error")
        return str(value) if value else None

    def _raise_if_rejected(self, data: dict) -> None:
        if data.get("success") is False:
            raise RemoteRejectedError(self._remote_message(data), message=self._remote_message(data))

    # -------------------------------------- operations --------------------------------------
    async def _register(self, request: RegistrationRequest) -> RegistrationResult:
        data = await self._post(ACTION_REGISTER, request.to_payload())
        self._raise_if_rejected(data)
        return RegistrationResult.ok()

    async def _verify_code(self, request: CodeVerificationRequest) -> CodeVerificationResult:
        data = await self._post(ACTION_VERIFY, request.to_payload())
        if data.get("success"):
            return CodeVerificationResult.ok()
        return CodeVerificationResult.fail(self._remote_message(data) or CODE_MISMATCH, message=VERIFY_REJECTED)

    async def _login(self, request: LoginRequest) -> LoginResult:
        data = await self._post(ACTION_LOGIN, request.to_payload())
        self._raise_if_rejected(data)
        token = data.get("token") or data.get("session_token")
        if token or data.get("success") is True:
            return LoginResult.ok(session_token=str(token) if token else None)
        return LoginResult.fail(self._remote_message(data) or "La respuesta no confirmó la sesión")

    async def _purchase_tokens(self, request: TokenPurchaseRequest) -> TokenPurchaseResult:
        data = await self._post(ACTION_PURCHASE, request.to_payload())
        self._raise_if_rejected(data)
        balance: Any = data.get("balance", data.get("credits"))
        return TokenPurchaseResult.ok(tokens_added=request.amount, balance=to_int(balance, default=None))
