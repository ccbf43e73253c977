"""Basic commands available to every registered user"""
import logging

from drasbot.exceptions import ValidationError
from drasbot.models.command import CommandDefinition, CommandResult
from drasbot.models.handler import SideAction
from drasbot.models.user import UserLevel
from drasbot.services.command_registry import CommandInvocation
from drasbot.validators import resolve_setting, validate_display_name

logger = logging.getLogger(__name__)


async def help_command(inv: CommandInvocation) -> CommandResult:
    """List the commands the caller may use, or describe one"""
    bundle = inv.bundle
    registry = inv.services.registry
    visible = registry.list_for(inv.user.level)

    if inv.args:
        definition = registry.resolve(inv.args[0])
        if definition is None or definition not in visible:
            return CommandResult.invalid(bundle.reply("unknown_command", command=inv.args[0].lower()))
        aliases = ", ".join(definition.aliases) or "-"
        return CommandResult.ok(bundle.reply(
            "help_detail",
            name=definition.name,
            description=definition.description,
            usage=definition.usage or f"{bundle.prefix}{definition.name}",
            aliases=aliases
        ))

    lines = [bundle.reply("help_header")]
    for definition in visible:
        lines.append(bundle.reply("help_line", name=definition.name, description=definition.description))
    lines.append(bundle.reply("help_footer"))
    return CommandResult.ok("\n".join(lines))


async def status_command(inv: CommandInvocation) -> CommandResult:
    bundle = inv.bundle
    status = await inv.services.bridge.get_connection_status()
    users = await inv.services.users.count()
    bridge = bundle.reply("bridge_connected" if status.connected else "bridge_disconnected")
    if status.connected and status.identity:
        bridge = f"{bridge} ({status.identity})"
    return CommandResult.ok(bundle.reply("status", bridge=bridge, users=users, level=inv.user.level.value))


async def profile_command(inv: CommandInvocation) -> CommandResult:
    bundle = inv.bundle
    user = inv.user
    return CommandResult.ok(bundle.reply(
        "profile",
        name=user.display_name or bundle.reply("no_name"),
        level=user.level.value,
        registered=bundle.reply("yes" if user.is_registered else "no"),
        language=bundle.lang
    ))


async def name_command(inv: CommandInvocation) -> CommandResult:
    """Set the display name directly, or start the name prompt"""
    bundle = inv.bundle
    flow = inv.services.registration_flow
    if not inv.args:
        started = flow.begin(bundle, welcome=False)
        return CommandResult.ok(started.reply, context=started.context)

    try:
        name = validate_display_name(" ".join(inv.args))
    except ValidationError as e:
        return CommandResult.invalid(bundle.reply_error(e))

    return CommandResult.ok(
        bundle.reply("name_updated", name=name),
        side_actions=[SideAction.persist_user(display_name=name, is_registered=True)]
    )


async def register_command(inv: CommandInvocation) -> CommandResult:
    bundle = inv.bundle
    if inv.user.is_registered:
        return CommandResult.ok(bundle.reply("registration_already", name=inv.user.display_name or ""))
    started = inv.services.registration_flow.begin(bundle, welcome=True)
    return CommandResult.ok(started.reply, context=started.context)


async def config_command(inv: CommandInvocation) -> CommandResult:
    """!config, !config <setting>, or !config <setting> <value>"""
    bundle = inv.bundle
    flow = inv.services.configuration_flow
    if not inv.args:
        return CommandResult.ok(bundle.reply("config_menu"))

    setting = resolve_setting(inv.args[0])
    if setting is None:
        return CommandResult.invalid(bundle.reply("config_unknown_setting", setting=inv.args[0]))

    if len(inv.args) == 1:
        asked = flow.ask(bundle, setting)
        return CommandResult.ok(asked.reply, context=asked.context)

    stored = flow.store(bundle, setting, inv.args[1], in_context=False)
    if not stored.success:
        return CommandResult.invalid(stored.reply)
    return CommandResult.ok(stored.reply, side_actions=stored.side_actions)


BASIC_COMMANDS = [
    CommandDefinition(
        name="help",
        executor=help_command,
        aliases=("ayuda", "comandos"),
        min_level=UserLevel.GUEST,
        description="Muestra los comandos disponibles",
        usage="!help [comando]",
        examples=("!help", "!ayuda perfil"),
        category="basic",
    ),
    CommandDefinition(
        name="status",
        executor=status_command,
        aliases=("estado", "info"),
        min_level=UserLevel.GUEST,
        description="Estado del bot y de la conexión con WhatsApp",
        usage="!status",
        category="basic",
        cooldown_seconds=5,
    ),
    CommandDefinition(
        name="perfil",
        executor=profile_command,
        aliases=("profile", "whoami", "quien-soy"),
        description="Muestra tu perfil",
        usage="!perfil",
        category="basic",
    ),
    CommandDefinition(
        name="nombre",
        executor=name_command,
        aliases=("mellamo", "name"),
        min_level=UserLevel.GUEST,
        description="Cambia el nombre con el que te llamo",
        usage="!nombre [tu nombre]",
        examples=("!nombre Ana",),
        category="basic",
    ),
    CommandDefinition(
        name="registro",
        executor=register_command,
        aliases=("register", "signup"),
        min_level=UserLevel.GUEST,
        description="Empieza el registro",
        usage="!registro",
        category="basic",
    ),
    CommandDefinition(
        name="config",
        executor=config_command,
        aliases=("configuracion", "ajustes"),
        description="Cambia tus preferencias (idioma, notificaciones)",
        usage="!config [idioma|notificaciones] [valor]",
        examples=("!config idioma en", "!config notificaciones"),
        category="basic",
    ),
]
