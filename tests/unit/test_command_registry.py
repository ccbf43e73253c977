"""Unit tests for CommandRegistry"""
import pytest
from types import SimpleNamespace

from drasbot.commands import DEFAULT_COMMANDS, build_registry
from drasbot.exceptions import CommandRegistrationError, ConfigurationError
from drasbot.models.command import CommandDefinition, CommandResult, CommandStatus
from drasbot.models.handler import SideActionKind
from drasbot.models.user import User, UserLevel
from drasbot.services.command_registry import CommandRegistry


def bundle_for(level: UserLevel, identity: str = "34600111222"):
    """Minimal stand-in for the MessageContext a command sees"""
    return SimpleNamespace(user=User(identity=identity, level=level), lang="es")


def definition(name, aliases=(), min_level=UserLevel.USER, cooldown=0, result=None, calls=None):
    async def executor(inv):
        if calls is not None:
            calls.append(inv)
        return result or CommandResult.ok("done")
    return CommandDefinition(
        name=name,
        executor=executor,
        aliases=aliases,
        min_level=min_level,
        cooldown_seconds=cooldown
    )


class TestRegistration:

    def test_default_catalog_has_no_collisions(self):
        registry = build_registry()
        assert len(registry) == len(DEFAULT_COMMANDS)

    def test_resolve_by_alias_is_case_insensitive(self):
        registry = build_registry()
        for name in ("ayuda", "AYUDA", "Help", "comandos"):
            assert registry.resolve(name).name == "help"
        assert registry.resolve("nope") is None
        assert registry.resolve("") is None

    def test_alias_colliding_with_name_fails(self):
        registry = CommandRegistry()
        registry.register(definition("help", aliases=("ayuda",)))
        with pytest.raises(CommandRegistrationError):
            registry.register(definition("info", aliases=("HELP",)))

    def test_alias_colliding_with_alias_fails(self):
        registry = CommandRegistry()
        registry.register(definition("help", aliases=("ayuda",)))
        with pytest.raises(CommandRegistrationError):
            registry.register(definition("soporte", aliases=("ayuda",)))

    def test_duplicate_catalog_aborts_build(self):
        with pytest.raises(CommandRegistrationError):
            build_registry(DEFAULT_COMMANDS + [definition("estado")])

    def test_frozen_registry_rejects_new_commands(self):
        registry = build_registry()
        with pytest.raises(ConfigurationError):
            registry.register(definition("extra"))

    def test_list_for_filters_by_level(self):
        registry = build_registry()
        guest = {d.name for d in registry.list_for(UserLevel.GUEST)}
        admin = {d.name for d in registry.list_for(UserLevel.ADMIN)}

        assert "help" in guest
        assert "nivel" not in guest
        assert "nivel" in admin
        assert "usuarios" in admin
        assert len(registry.list_for(UserLevel.OWNER)) == len(DEFAULT_COMMANDS)

    def test_escape_names_include_aliases(self):
        registry = build_registry()
        assert {"cancelar", "cancel", "salir", "pausa", "continuar", "atras"} <= set(registry.escape_names())
        assert "help" not in registry.escape_names()


class TestExecution:

    @pytest.mark.asyncio
    async def test_unknown_command_is_a_result(self):
        registry = CommandRegistry()
        result = await registry.execute("ghost", [], bundle_for(UserLevel.USER))
        assert result.status is CommandStatus.UNKNOWN
        assert result.side_actions == []

    @pytest.mark.asyncio
    async def test_denied_never_runs_executor(self):
        calls = []
        registry = CommandRegistry()
        registry.register(definition("nivel", min_level=UserLevel.ADMIN, calls=calls))

        result = await registry.execute("nivel", ["x"], bundle_for(UserLevel.MODERATOR))

        assert result.status is CommandStatus.DENIED
        assert calls == []
        assert result.side_actions == []
        assert registry.stats("nivel").denials == 1

    @pytest.mark.asyncio
    async def test_owner_passes_every_check(self):
        registry = CommandRegistry()
        registry.register(definition("secret", min_level=UserLevel.OWNER))
        registry.register(definition("admin", min_level=UserLevel.ADMIN))

        for name in ("secret", "admin"):
            result = await registry.execute(name, [], bundle_for(UserLevel.OWNER))
            assert result.status is CommandStatus.OK

    @pytest.mark.asyncio
    async def test_blocked_user_fails_guest_commands(self):
        registry = CommandRegistry()
        registry.register(definition("help", min_level=UserLevel.GUEST))
        result = await registry.execute("help", [], bundle_for(UserLevel.BLOCKED))
        assert result.status is CommandStatus.DENIED

    @pytest.mark.asyncio
    async def test_executed_commands_get_a_log_side_action(self):
        calls = []
        registry = CommandRegistry()
        registry.register(definition("perfil", aliases=("whoami",), calls=calls))

        result = await registry.execute("WhoAmI", ["a", "b"], bundle_for(UserLevel.USER))

        assert result.status is CommandStatus.OK
        assert calls[0].invoked_as == "whoami"
        assert calls[0].args == ["a", "b"]
        log = result.side_actions[-1]
        assert log.kind is SideActionKind.LOG_COMMAND
        assert log.payload == {"command": "perfil", "args": ["a", "b"], "success": True}

    @pytest.mark.asyncio
    async def test_failed_command_is_logged_as_failure(self):
        registry = CommandRegistry()
        registry.register(definition("qr", result=CommandResult.failed("bridge down")))

        result = await registry.execute("qr", [], bundle_for(UserLevel.USER))

        assert result.status is CommandStatus.FAILED
        assert result.side_actions[-1].payload["success"] is False
        assert registry.stats("qr").failures == 1

    @pytest.mark.asyncio
    async def test_cooldown_is_per_user(self, clock):
        registry = CommandRegistry(clock=clock)
        registry.register(definition("status", cooldown=5))

        first = await registry.execute("status", [], bundle_for(UserLevel.USER, "a"))
        again = await registry.execute("status", [], bundle_for(UserLevel.USER, "a"))
        other = await registry.execute("status", [], bundle_for(UserLevel.USER, "b"))

        assert first.status is CommandStatus.OK
        assert again.status is CommandStatus.COOLDOWN
        assert again.data["seconds"] == 5
        assert again.side_actions == []
        assert other.status is CommandStatus.OK

        clock.advance(seconds=5)
        assert (await registry.execute("status", [], bundle_for(UserLevel.USER, "a"))).status is CommandStatus.OK

    @pytest.mark.asyncio
    async def test_executor_exceptions_propagate(self):
        async def broken(inv):
            raise RuntimeError("boom")

        registry = CommandRegistry()
        registry.register(CommandDefinition(name="broken", executor=broken))
        with pytest.raises(RuntimeError):
            await registry.execute("broken", [], bundle_for(UserLevel.USER))
