"""Moderator and admin commands"""
import logging
from typing import Optional

from drasbot.exceptions import BridgeError
from drasbot.models.command import CommandDefinition, CommandResult
from drasbot.models.handler import SideAction
from drasbot.models.user import UserLevel
from drasbot.services.command_registry import CommandInvocation

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20


def normalize_identity(raw: str) -> str:
    """Accept '+34 600...', '@34600...' or a JID and return the identity key"""
    value = raw.strip().lstrip("@")
    if "@" in value:
        return value
    return value.lstrip("+").replace(" ", "")


def _parse_limit(args: list[str], index: int, default: int = DEFAULT_PAGE_SIZE) -> Optional[int]:
    if len(args) <= index:
        return default
    try:
        value = int(args[index])
    except ValueError:
        return None
    return value if 0 < value <= 100 else None


def _may_manage(actor: UserLevel, target: UserLevel) -> bool:
    """Only strictly higher levels manage lower ones; owners manage everyone"""
    return actor is UserLevel.OWNER or actor.rank > target.rank


async def users_command(inv: CommandInvocation) -> CommandResult:
    bundle = inv.bundle
    page = _parse_limit(inv.args, 0, default=1)
    if page is None:
        return CommandResult.invalid()

    users = await inv.services.users.list_users(limit=DEFAULT_PAGE_SIZE, offset=(page - 1) * DEFAULT_PAGE_SIZE)
    total = await inv.services.users.count()
    lines = [bundle.reply("users_header", total=total)]
    for user in users:
        lines.append(bundle.reply(
            "users_line",
            name=user.display_name or bundle.reply("no_name"),
            identity=user.identity,
            level=user.level.value
        ))
    return CommandResult.ok("\n".join(lines))


async def level_command(inv: CommandInvocation) -> CommandResult:
    """!nivel <identity> <level>"""
    bundle = inv.bundle
    if len(inv.args) < 2:
        return CommandResult.invalid()

    identity = normalize_identity(inv.args[0])
    try:
        level = UserLevel.parse(inv.args[1])
    except ValueError:
        options = ", ".join(level.value for level in UserLevel)
        return CommandResult.invalid(bundle.reply("level_invalid", options=options))

    target = await inv.services.users.find_by_identity(identity)
    if target is None:
        return CommandResult.failed(bundle.reply("user_not_found", identity=identity))

    actor = inv.user.level
    if not _may_manage(actor, target.level) or not (actor is UserLevel.OWNER or level.rank < actor.rank):
        return CommandResult.failed(bundle.reply("level_not_allowed"))

    logger.info(f"{inv.user.identity} set level of {identity} to {level.value}")
    return CommandResult.ok(
        bundle.reply("level_set", identity=identity, level=level.value),
        side_actions=[
            SideAction.persist_user(identity=identity, level=level.value),
            SideAction.notify(identity, bundle.reply("level_set", identity=identity, level=level.value)),
        ]
    )


async def block_command(inv: CommandInvocation) -> CommandResult:
    """!bloquear <identity>"""
    bundle = inv.bundle
    if not inv.args:
        return CommandResult.invalid()

    identity = normalize_identity(inv.args[0])
    if identity == inv.user.identity:
        return CommandResult.failed(bundle.reply("block_self"))

    target = await inv.services.users.find_by_identity(identity)
    if target is None:
        return CommandResult.failed(bundle.reply("user_not_found", identity=identity))
    if not _may_manage(inv.user.level, target.level):
        return CommandResult.failed(bundle.reply("level_not_allowed"))

    logger.info(f"{inv.user.identity} blocked {identity}")
    return CommandResult.ok(
        bundle.reply("block_done", identity=identity),
        side_actions=[SideAction.persist_user(identity=identity, level=UserLevel.BLOCKED.value)]
    )


async def chats_command(inv: CommandInvocation) -> CommandResult:
    bundle = inv.bundle
    limit = _parse_limit(inv.args, 0)
    if limit is None:
        return CommandResult.invalid()

    try:
        chats = await inv.services.bridge.get_chats(limit=limit)
    except BridgeError as e:
        return CommandResult.failed(bundle.reply_error(e))

    if not chats:
        return CommandResult.ok(bundle.reply("chats_empty"))
    lines = [bundle.reply("chats_header")]
    for chat in chats:
        jid = chat.get("jid") or chat.get("id", "?")
        lines.append(bundle.reply("chats_line", name=chat.get("name") or jid, jid=jid))
    return CommandResult.ok("\n".join(lines))


async def history_command(inv: CommandInvocation) -> CommandResult:
    """!historial <jid|phone> [limit]"""
    bundle = inv.bundle
    if not inv.args:
        return CommandResult.invalid()
    limit = _parse_limit(inv.args, 1)
    if limit is None:
        return CommandResult.invalid()

    jid = normalize_identity(inv.args[0])
    try:
        messages = await inv.services.bridge.get_history(jid, limit=limit)
    except BridgeError as e:
        return CommandResult.failed(bundle.reply_error(e))

    if not messages:
        return CommandResult.ok(bundle.reply("history_empty"))
    lines = [bundle.reply("history_header", jid=jid)]
    for message in messages:
        lines.append(bundle.reply(
            "history_line",
            time=message.get("timestamp", ""),
            sender=message.get("sender", "?"),
            content=message.get("content", "")
        ))
    return CommandResult.ok("\n".join(lines))


async def qr_command(inv: CommandInvocation) -> CommandResult:
    bundle = inv.bundle
    try:
        qr = await inv.services.bridge.get_qr_code()
    except BridgeError as e:
        return CommandResult.failed(bundle.reply_error(e))
    if not qr:
        return CommandResult.ok(bundle.reply("qr_none"))
    return CommandResult.ok(bundle.reply("qr_ready", qr=qr))


MODERATOR_COMMANDS = [
    CommandDefinition(
        name="usuarios",
        executor=users_command,
        aliases=("users",),
        min_level=UserLevel.MODERATOR,
        description="Lista los usuarios",
        usage="!usuarios [página]",
        category="moderation",
    ),
]

ADMIN_COMMANDS = [
    CommandDefinition(
        name="nivel",
        executor=level_command,
        aliases=("level", "promote"),
        min_level=UserLevel.ADMIN,
        description="Cambia el nivel de un usuario",
        usage="!nivel <teléfono> <guest|user|moderator|admin>",
        examples=("!nivel 34600111222 moderator",),
        category="admin",
    ),
    CommandDefinition(
        name="bloquear",
        executor=block_command,
        aliases=("block",),
        min_level=UserLevel.ADMIN,
        description="Bloquea a un usuario",
        usage="!bloquear <teléfono>",
        category="admin",
    ),
    CommandDefinition(
        name="chats",
        executor=chats_command,
        aliases=("conversaciones",),
        min_level=UserLevel.ADMIN,
        description="Chats recientes del bridge",
        usage="!chats [límite]",
        category="bridge",
        cooldown_seconds=10,
    ),
    CommandDefinition(
        name="historial",
        executor=history_command,
        aliases=("history",),
        min_level=UserLevel.ADMIN,
        description="Historial de un chat",
        usage="!historial <teléfono|jid> [límite]",
        category="bridge",
        cooldown_seconds=10,
    ),
    CommandDefinition(
        name="qr",
        executor=qr_command,
        aliases=("codigo",),
        min_level=UserLevel.ADMIN,
        description="Código QR para vincular el bridge",
        usage="!qr",
        category="bridge",
    ),
]
