"""
Service Container - Dependency Injection Container

Holds the infrastructure a dispatch needs (stores, bridge, registry) and
lazily builds the pieces that depend on it: flows, classifier, handler
chain and dispatcher.
"""

from dataclasses import dataclass, field
from typing import Any, Optional
import logging

from drasbot.config import (
    COMMAND_PREFIX,
    CONTEXT_TTL_SECONDS,
    DEFAULT_LANGUAGE,
    FALLBACK_ACTION,
    REGISTRATION_MAX_ATTEMPTS,
    STORAGE_BACKEND,
)
from drasbot.utils.datetime_helpers import Clock, now_utc

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """
    Dependency container for one running bot.

    Infrastructure is injected; flows, classifier, handler chain and
    dispatcher are lazy-loaded on first access.
    """

    # Infrastructure dependencies (injected)
    users: Any  # UserService
    contexts: Any  # ContextManager
    registry: Any  # frozen CommandRegistry
    bridge: Any  # WhatsAppBridgeClient or anything with send_text()
    command_logs: Any  # CommandLogStore

    # Dispatch settings
    command_prefix: str = COMMAND_PREFIX
    default_language: str = DEFAULT_LANGUAGE
    fallback_action: str = FALLBACK_ACTION
    registration_max_attempts: int = REGISTRATION_MAX_ATTEMPTS

    # Lazy-loaded
    _registration_flow: Optional[object] = field(default=None, init=False, repr=False)
    _configuration_flow: Optional[object] = field(default=None, init=False, repr=False)
    _classifier: Optional[object] = field(default=None, init=False, repr=False)
    _handler_chain: Optional[object] = field(default=None, init=False, repr=False)
    _dispatcher: Optional[object] = field(default=None, init=False, repr=False)

    @property
    def clock(self) -> Clock:
        return self.contexts.clock

    @property
    def registration_flow(self):
        """Get RegistrationFlow instance (lazy-loaded)"""
        if self._registration_flow is None:
            from drasbot.handlers.registration import RegistrationFlow
            self._registration_flow = RegistrationFlow(self.registration_max_attempts)
            logger.debug("RegistrationFlow instantiated")
        return self._registration_flow

    @property
    def configuration_flow(self):
        """Get ConfigurationFlow instance (lazy-loaded)"""
        if self._configuration_flow is None:
            from drasbot.handlers.configuration import ConfigurationFlow
            self._configuration_flow = ConfigurationFlow()
            logger.debug("ConfigurationFlow instantiated")
        return self._configuration_flow

    @property
    def classifier(self):
        """Get MessageClassifier built from the registry (lazy-loaded)"""
        if self._classifier is None:
            from drasbot.services.classifier import MessageClassifier
            self._classifier = MessageClassifier.from_registry(self.registry, self.command_prefix)
            logger.debug("MessageClassifier instantiated")
        return self._classifier

    @property
    def handler_chain(self):
        """Get the default HandlerChain (lazy-loaded)"""
        if self._handler_chain is None:
            from drasbot.handlers.commands import CommandHandler
            from drasbot.handlers.conversation import (
                BlockedUserHandler,
                IdleContextHandler,
                SmallTalkHandler,
                StaleContextHandler,
                WelcomeHandler,
            )
            from drasbot.handlers.registration import NameDeclarationHandler
            from drasbot.models.context import IDLE
            from drasbot.services.dispatcher import HandlerChain

            registration = self.registration_flow
            configuration = self.configuration_flow
            self._handler_chain = HandlerChain([
                BlockedUserHandler(),
                CommandHandler(),
                registration,
                configuration,
                IdleContextHandler(),
                NameDeclarationHandler(registration),
                WelcomeHandler(registration),
                SmallTalkHandler(),
                StaleContextHandler([registration.context_type, configuration.context_type, IDLE]),
            ])
            logger.debug(f"HandlerChain instantiated with {len(self._handler_chain)} handlers")
        return self._handler_chain

    @property
    def dispatcher(self):
        """Get Dispatcher instance (lazy-loaded)"""
        if self._dispatcher is None:
            from drasbot.services.dispatcher import Dispatcher
            self._dispatcher = Dispatcher(self, self.handler_chain, self.classifier)
            logger.debug("Dispatcher instantiated")
        return self._dispatcher


def build_container(
    storage_backend: str = STORAGE_BACKEND,
    bridge: Optional[Any] = None,
    clock: Clock = now_utc,
    context_ttl_seconds: int = CONTEXT_TTL_SECONDS,
    owner_ids: Optional[list[str]] = None,
    **settings: Any
) -> ServiceContainer:
    """
    Wire stores, services and the command registry into a container.

    Args:
        storage_backend: 'postgres' (needs an initialized db pool) or 'memory'
        bridge: Outbound transport; defaults to a WhatsAppBridgeClient from config
        clock: Source of "now" shared by every service
        context_ttl_seconds: Context lifetime after last interaction
        owner_ids: Identities promoted to owner on creation (defaults to OWNER_IDS)
        **settings: ServiceContainer dispatch settings (command_prefix, ...)

    Returns:
        ServiceContainer: The wired container
    """
    from drasbot.commands import build_registry
    from drasbot.services.context_manager import ContextManager
    from drasbot.services.user_service import UserService

    if storage_backend == "postgres":
        from drasbot.db.stores import PostgresCommandLogStore, PostgresContextStore, PostgresUserStore
        user_store = PostgresUserStore()
        context_store = PostgresContextStore()
        command_log_store = PostgresCommandLogStore()
    elif storage_backend == "memory":
        from drasbot.db.memory_store import InMemoryCommandLogStore, InMemoryContextStore, InMemoryUserStore
        user_store = InMemoryUserStore(clock)
        context_store = InMemoryContextStore()
        command_log_store = InMemoryCommandLogStore()
    else:
        raise ValueError(f"Unknown storage backend: {storage_backend}")

    if bridge is None:
        from drasbot.bridge import WhatsAppBridgeClient
        bridge = WhatsAppBridgeClient()

    container = ServiceContainer(
        users=UserService(user_store, owner_ids=owner_ids, clock=clock),
        contexts=ContextManager(context_store, ttl_seconds=context_ttl_seconds, clock=clock),
        registry=build_registry(clock=clock),
        bridge=bridge,
        command_logs=command_log_store,
        **settings
    )
    logger.info(f"Service container built with {storage_backend} storage and {len(container.registry)} commands")
    return container
