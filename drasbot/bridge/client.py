"""
WhatsApp bridge HTTP client

The bridge is a separate process speaking the WhatsApp protocol and exposing a
small REST API. Dispatch only needs `send_text` and `get_connection_status`;
the chat list, history and QR code reads back admin commands.
"""

import logging
import re
from typing import Any, Optional

import httpx
import pybreaker
from pydantic import BaseModel

from drasbot.config import BRIDGE_API_KEY, BRIDGE_TIMEOUT_SECONDS, BRIDGE_URL
from drasbot.exceptions import BridgeError, wrap_external_exception
from drasbot.monitoring import track_bridge_request
from drasbot.resilience import BRIDGE_BREAKER, call_with_breaker, retry_with_backoff

logger = logging.getLogger(__name__)

USER_JID_SUFFIX = "@s.whatsapp.net"


class ConnectionStatus(BaseModel):
    connected: bool
    identity: Optional[str] = None
    error: Optional[str] = None


def to_jid(recipient: str) -> str:
    """Turn a bare phone number into a user JID; JIDs pass through"""
    if "@" in recipient:
        return recipient
    return f"{re.sub(r'[^0-9]', '', recipient)}{USER_JID_SUFFIX}"


class WhatsAppBridgeClient:
    """
    Client for the bridge REST API.

    Every request goes through retry with backoff (timeouts, 429 and 5xx
    only) inside the bridge circuit breaker.
    """

    def __init__(
        self,
        base_url: str = BRIDGE_URL,
        api_key: str = BRIDGE_API_KEY,
        timeout: float = BRIDGE_TIMEOUT_SECONDS,
        max_retries: int = 2,
        retry_base_delay: float = 0.5,
        breaker: pybreaker.CircuitBreaker = BRIDGE_BREAKER,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Args:
            base_url: Bridge root URL
            api_key: Sent as a Bearer token when set
            timeout: Per-request timeout in seconds
            max_retries: Retries for transient failures
            retry_base_delay: First backoff delay in seconds
            breaker: Circuit breaker guarding the bridge
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.breaker = breaker
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            transport=transport
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        """Issue one protected request and return the decoded body"""
        async def _send() -> httpx.Response:
            response = await self._client.request(method, endpoint, **kwargs)
            response.raise_for_status()
            return response

        # Retries run inside one breaker call so a single flaky request
        # counts as one failure
        async def _with_retry() -> httpx.Response:
            return await retry_with_backoff(
                _send,
                max_retries=self.max_retries,
                base_delay=self.retry_base_delay,
                operation=f"bridge {endpoint}"
            )

        with track_bridge_request(endpoint):
            response = await call_with_breaker(self.breaker, _with_retry)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {"success": True, "data": response.text}

    async def send_text(self, recipient: str, text: str) -> bool:
        """
        Send a text message.

        Never raises: failures are logged and reported as False so the caller
        can carry on.
        """
        if not recipient or not text:
            logger.warning("Refusing to send empty message or to empty recipient")
            return False

        jid = to_jid(recipient)
        try:
            body = await self._request("POST", "/api/send", json={"recipient": jid, "message": text})
        except pybreaker.CircuitBreakerError:
            logger.warning(f"Bridge circuit open, reply to {jid} dropped")
            return False
        except httpx.HTTPError as e:
            logger.error(f"Failed to send message to {jid}: {type(e).__name__}: {e}")
            return False

        success = bool(body.get("success", True)) if isinstance(body, dict) else True
        if not success:
            logger.warning(f"Bridge rejected message to {jid}: {body.get('message')}")
        return success

    async def get_connection_status(self) -> ConnectionStatus:
        """Report whether the bridge is connected to WhatsApp; never raises"""
        try:
            body = await self._request("GET", "/api/status")
        except (pybreaker.CircuitBreakerError, httpx.HTTPError) as e:
            logger.warning(f"Bridge status check failed: {type(e).__name__}: {e}")
            return ConnectionStatus(connected=False, error=str(e) or type(e).__name__)

        data = body.get("data", body) if isinstance(body, dict) else {}
        return ConnectionStatus(
            connected=bool(data.get("connected", body.get("success", False))),
            identity=data.get("identity") or data.get("jid")
        )

    async def _admin_read(self, operation: str, endpoint: str, **params: Any) -> Any:
        try:
            body = await self._request("GET", endpoint, params=params or None)
        except pybreaker.CircuitBreakerError as e:
            raise BridgeError(
                message="Bridge circuit open",
                endpoint=endpoint,
                operation=operation,
                cause=e
            )
        except httpx.HTTPError as e:
            raise wrap_external_exception(e, operation=operation, context={"endpoint": endpoint})

        if isinstance(body, dict):
            if body.get("success") is False:
                raise BridgeError(
                    message=f"Bridge reported failure: {body.get('message')}",
                    endpoint=endpoint,
                    operation=operation
                )
            return body.get("data", body)
        return body

    async def get_chats(self, limit: int = 20) -> list[dict]:
        """Recent chats known to the bridge"""
        data = await self._admin_read("get_chats", "/api/chats", limit=limit)
        chats = data.get("chats", []) if isinstance(data, dict) else data
        return list(chats or [])[:limit]

    async def get_history(self, chat_jid: str, limit: int = 20) -> list[dict]:
        """Recent messages of one chat"""
        data = await self._admin_read(
            "get_history", "/api/messages/history", chat_jid=to_jid(chat_jid), limit=limit
        )
        messages = data.get("messages", []) if isinstance(data, dict) else data
        return list(messages or [])

    async def get_qr_code(self) -> Optional[str]:
        """Pairing QR payload, or None when the bridge is already paired"""
        data = await self._admin_read("get_qr_code", "/api/qr")
        if isinstance(data, dict):
            return data.get("qr") or data.get("code")
        return data or None
