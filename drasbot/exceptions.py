"""
Exception hierarchy for drasbot

Every error carries what the logs need (operation, user, structured context,
the original cause) and what the user may be told: a reply catalog key plus
its format parameters, rendered in the user's language by `user_reply()`.
Errors log themselves once, when constructed.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import uuid4
import logging

from drasbot.i18n.translations import t

logger = logging.getLogger(__name__)


class DrasBotError(Exception):
    """
    Base class for drasbot errors.

    Example:
        raise DrasBotError(
            "Failed to persist context",
            user_id="34600111222",
            operation="save_context",
            context={"context_type": "registration"}
        )
    """

    log_level = logging.ERROR
    reply_key = "error_generic"

    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        reply_key: Optional[str] = None,
        reply_params: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.operation = operation
        self.context = context or {}
        self.cause = cause
        if reply_key:
            self.reply_key = reply_key
        self.reply_params = reply_params or {}
        self.request_id = request_id or uuid4().hex
        self.timestamp = datetime.now(timezone.utc)
        self._log()

    def _log(self) -> None:
        extra = {
            "error_type": type(self).__name__,
            "error_message": self.message,  # 'message' is reserved by LogRecord
            "request_id": self.request_id,
            "user_id": self.user_id,
            "operation": self.operation,
            "error_context": self.context,
        }
        where = f" during {self.operation}" if self.operation else ""
        logger.log(
            self.log_level,
            f"{type(self).__name__}{where}: {self.message}",
            extra=extra,
            exc_info=self.cause
        )

    def user_reply(self, lang: Optional[str] = None, **params: Any) -> str:
        """The message shown to the user, in `lang`"""
        return t(self.reply_key, lang, **{**self.reply_params, **params})

    def to_dict(self) -> Dict[str, Any]:
        """JSON body for API error responses (no internal detail)"""
        return {
            "error": type(self).__name__,
            "message": self.message,
            "request_id": self.request_id,
            "timestamp": self.timestamp.isoformat()
        }


# ==========================================
# User input
# ==========================================

class ValidationError(DrasBotError):
    """
    User input rejected; the reply key names the correction to show.

    Examples: a display name that looks like a phone number, an unknown
    preference value.
    """

    log_level = logging.WARNING

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs
    ):
        self.field = field
        self.value = value
        kwargs.setdefault("context", {"field": field, "value": value})
        super().__init__(message, **kwargs)


# ==========================================
# Storage
# ==========================================

class DatabaseError(DrasBotError):
    """Storage failure"""


class ConnectionError(DatabaseError):
    """Database unreachable"""

    def __init__(self, message: str = "Database connection failed", **kwargs):
        super().__init__(message, **kwargs)


class QueryError(DatabaseError):
    """A statement failed"""

    def __init__(self, message: str, query: Optional[str] = None, **kwargs):
        self.query = query
        if query:
            kwargs.setdefault("context", {"query": query})
        super().__init__(message, **kwargs)


class RecordNotFoundError(DatabaseError):
    """A record the caller required does not exist"""

    log_level = logging.WARNING
    reply_key = "user_not_found"

    def __init__(
        self,
        message: str,
        record_type: Optional[str] = None,
        record_id: Optional[str] = None,
        **kwargs
    ):
        self.record_type = record_type
        self.record_id = record_id
        kwargs.setdefault("context", {"record_type": record_type, "record_id": record_id})
        kwargs.setdefault("reply_params", {"identity": record_id or "?"})
        super().__init__(message, **kwargs)


# ==========================================
# Messaging bridge
# ==========================================

class ExternalAPIError(DrasBotError):
    """An HTTP service we depend on failed"""

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs
    ):
        self.service = service
        self.status_code = status_code
        kwargs.setdefault("context", {"service": service, "status_code": status_code})
        super().__init__(message, **kwargs)


class BridgeError(ExternalAPIError):
    """WhatsApp bridge unreachable, or it rejected the request"""

    log_level = logging.WARNING
    reply_key = "bridge_unavailable"

    def __init__(self, message: str, endpoint: Optional[str] = None, **kwargs):
        self.endpoint = endpoint
        super().__init__(message, service="whatsapp_bridge", **kwargs)


# ==========================================
# Permissions
# ==========================================

class AuthorizationError(DrasBotError):
    """Caller's level is below what the operation needs"""

    log_level = logging.WARNING
    reply_key = "permission_denied"

    def __init__(self, message: str = "Insufficient permissions", resource: Optional[str] = None, **kwargs):
        self.resource = resource
        kwargs.setdefault("context", {"resource": resource})
        kwargs.setdefault("reply_params", {"command": resource or "?"})
        super().__init__(message, **kwargs)


# ==========================================
# Startup
# ==========================================

class ConfigurationError(DrasBotError):
    """Invalid wiring or settings; raised before the webhook serves"""

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        self.config_key = config_key
        kwargs.setdefault("context", {"config_key": config_key})
        super().__init__(message, **kwargs)


class CommandRegistrationError(ConfigurationError):
    """Command name or alias already taken"""

    def __init__(self, message: str, name: Optional[str] = None, **kwargs):
        self.name = name
        super().__init__(message, config_key=name, **kwargs)


# ==========================================
# Dispatch
# ==========================================

class DispatchError(DrasBotError):
    """Dispatch pipeline failure"""


class InvalidContextStepError(DispatchError):
    """A context flow tried to enter a step it does not declare"""

    def __init__(
        self,
        message: str,
        context_type: Optional[str] = None,
        step: Optional[str] = None,
        **kwargs
    ):
        self.context_type = context_type
        self.step = step
        super().__init__(message, context={"context_type": context_type, "step": step}, **kwargs)


def wrap_external_exception(
    error: Exception,
    operation: str,
    user_id: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None
) -> DrasBotError:
    """
    Translate a psycopg or httpx exception into the hierarchy.

    Example:
        try:
            row = await queries.get_user(identity)
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="get_user", user_id=identity)
    """
    import httpx
    import psycopg

    common = {"user_id": user_id, "operation": operation, "cause": error}
    if context is not None:
        common["context"] = context

    if isinstance(error, psycopg.OperationalError):
        return ConnectionError(f"Database connection failed: {error}", **common)
    if isinstance(error, psycopg.Error):
        return QueryError(f"Database query failed: {error}", **common)
    if isinstance(error, httpx.TimeoutException):
        return BridgeError(f"Bridge request timed out: {error}", **common)
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        return BridgeError(
            f"Bridge returned {status}",
            endpoint=error.request.url.path,
            status_code=status,
            **common
        )
    if isinstance(error, httpx.HTTPError):
        return BridgeError(f"Bridge request failed: {error}", **common)
    return DrasBotError(f"{operation} failed: {error}", **common)
