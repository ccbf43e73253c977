"""Global test fixtures and utilities for drasbot tests"""
import pytest
from datetime import datetime, timedelta, timezone
from typing import Optional

from drasbot.bridge import ConnectionStatus
from drasbot.db.memory_store import InMemoryContextStore, InMemoryUserStore
from drasbot.models.message import InboundMessage
from drasbot.services.container import build_container
from drasbot.services.context_manager import ContextManager
from drasbot.services.user_service import UserService


# ============================================================================
# Clock
# ============================================================================

class FakeClock:
    """Controllable clock: call it for "now", advance it instead of sleeping"""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, minutes: float = 0) -> datetime:
        self.now = self.now + timedelta(seconds=seconds, minutes=minutes)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


# ============================================================================
# Bridge Fixtures
# ============================================================================

class FakeBridge:
    """Records outgoing messages instead of talking to WhatsApp"""

    def __init__(self, connected: bool = True):
        self.sent: list[tuple[str, str]] = []
        self.connected = connected
        self.fail_sends = False
        self.chats: list[dict] = []
        self.history: list[dict] = []
        self.qr: Optional[str] = None
        self.closed = False

    async def send_text(self, recipient: str, text: str) -> bool:
        if self.fail_sends:
            return False
        self.sent.append((recipient, text))
        return True

    async def get_connection_status(self) -> ConnectionStatus:
        return ConnectionStatus(connected=self.connected, identity="34600000000" if self.connected else None)

    async def get_chats(self, limit: int = 20) -> list[dict]:
        return self.chats[:limit]

    async def get_history(self, chat_jid: str, limit: int = 20) -> list[dict]:
        return self.history[:limit]

    async def get_qr_code(self) -> Optional[str]:
        return self.qr

    async def close(self) -> None:
        self.closed = True

    def texts_to(self, recipient: str) -> list[str]:
        return [text for to, text in self.sent if to == recipient]


@pytest.fixture
def bridge():
    return FakeBridge()


# ============================================================================
# Store & Service Fixtures
# ============================================================================

@pytest.fixture
def user_store(clock):
    return InMemoryUserStore(clock)


@pytest.fixture
def context_store():
    return InMemoryContextStore()


@pytest.fixture
def context_manager(context_store, clock):
    return ContextManager(context_store, ttl_seconds=300, clock=clock)


@pytest.fixture
def user_service(user_store, clock):
    return UserService(user_store, owner_ids=["34999999999"], clock=clock)


@pytest.fixture
def container(bridge, clock):
    """Fully wired container on in-memory stores"""
    return build_container(
        "memory",
        bridge=bridge,
        clock=clock,
        owner_ids=["34999999999"],
        command_prefix="!",
        default_language="es",
        fallback_action="reply",
        registration_max_attempts=3
    )


@pytest.fixture
def dispatcher(container):
    return container.dispatcher


# ============================================================================
# Message & User Fixtures
# ============================================================================

@pytest.fixture
def test_user_id():
    """Standard test identity"""
    return "34600111222"


@pytest.fixture
def owner_id():
    return "34999999999"


class MessageFactory:
    """Builds InboundMessages with unique ids"""

    def __init__(self):
        self.counter = 0

    def __call__(self, text: str, sender: str = "34600111222", push_name: Optional[str] = None) -> InboundMessage:
        self.counter += 1
        return InboundMessage(message_id=f"msg-{self.counter}", sender=sender, text=text, push_name=push_name)


@pytest.fixture
def make_message():
    return MessageFactory()


@pytest.fixture
async def registered_user(container, test_user_id):
    """A registered user named Ana at the default level"""
    return await container.users.create(test_user_id, display_name="Ana", is_registered=True)

