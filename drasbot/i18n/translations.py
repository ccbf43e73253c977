"""
Reply catalog for multi-language support.

Uses a simple dictionary approach: language_code -> {key: template}. A
template is either a string or a list of alternatives, one of which is picked
at random so repeated replies do not read robotic.
"""
import logging
import random
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "es"

Template = Union[str, list[str]]

TRANSLATIONS: Dict[str, Dict[str, Template]] = {
    "es": {
        # Generic outcomes
        "error_generic": "😔 Ha ocurrido un error procesando tu mensaje. Inténtalo de nuevo en un momento.",
        "fallback": [
            "🤔 No he entendido tu mensaje. Escribe {prefix}ayuda para ver lo que puedo hacer.",
            "Entiendo. ¿Hay algo específico en lo que pueda ayudarte? Prueba con {prefix}ayuda.",
        ],
        "unknown_command": "❓ No conozco el comando *{prefix}{command}*. Escribe {prefix}ayuda para ver la lista.",
        "permission_denied": "🚫 No tienes permiso para usar *{prefix}{command}*.",
        "command_cooldown": "⏳ Espera {seconds}s antes de volver a usar *{prefix}{command}*.",
        "command_usage": "ℹ️ Uso: {usage}",

        # Registration
        "registration_welcome": (
            "🎉 *¡Bienvenido a DrasBot!*\n\n"
            "Antes de empezar, ¿cómo te llamas? Puedes escribir solo tu nombre "
            "o algo como \"me llamo Ana\"."
        ),
        "registration_prompt": "✍️ ¿Cómo quieres que te llame? Escribe tu nombre.",
        "registration_already": "✅ Ya estás registrado como *{name}*. Usa {prefix}nombre para cambiarlo.",
        "name_confirmation": [
            "✅ *¡Perfecto {name}!* Tu registro está completo.",
            "🎉 *¡Encantado de conocerte, {name}!* Ya estás registrado.",
            "👋 *¡Bienvenido {name}!* Registro completado.",
        ],
        "motivational": [
            "\n\n💡 Escribe {prefix}ayuda para ver qué puedo hacer.",
            "\n\n🚀 Prueba {prefix}perfil para ver tus datos.",
        ],
        "name_updated": "✅ Listo, a partir de ahora te llamaré *{name}*.",
        "name_error_empty": "❌ No he recibido ningún nombre.",
        "name_error_too_short": "❌ El nombre debe tener al menos {min} caracteres.",
        "name_error_too_long": "❌ El nombre no puede tener más de {max} caracteres.",
        "name_error_numeric": "❌ El nombre no puede ser solo números.",
        "name_error_phone": "❌ Eso parece un número de teléfono, no un nombre.",
        "name_error_chars": "❌ El nombre solo puede contener letras, números, espacios, puntos, guiones y guiones bajos.",
        "name_retry": "\n\nInténtalo de nuevo ({attempt}/{max}). Escribe *cancelar* para salir.",
        "registration_gave_up": "🛑 Demasiados intentos. He cancelado el registro; vuelve a saludarme cuando quieras.",

        # Configuration
        "config_menu": (
            "⚙️ *Configuración*\n\n"
            "{prefix}config idioma - idioma de las respuestas (es/en)\n"
            "{prefix}config notificaciones - avisos (on/off)"
        ),
        "config_ask_language": "🌐 ¿Qué idioma prefieres? Responde *es* o *en*.",
        "config_ask_notifications": "🔔 ¿Quieres recibir notificaciones? Responde *on* u *off*.",
        "config_invalid_value": "❌ Valor no válido. Opciones: {options}.",
        "config_saved": "✅ Guardado: {setting} = {value}.",
        "config_unknown_setting": "❓ No conozco el ajuste *{setting}*.",

        # Context escapes
        "cancelled": "✅ Operación cancelada.",
        "nothing_to_cancel": "ℹ️ No hay ninguna conversación en curso.",
        "reset_done": "🔄 Conversación reiniciada.",
        "paused": "⏸️ Conversación en pausa. Escribe *continuar* para retomarla.",
        "already_paused": "⏸️ La conversación ya está en pausa.",
        "not_paused": "ℹ️ No hay ninguna conversación en pausa.",
        "resumed": "▶️ Retomamos donde lo dejamos.",
        "back_done": "↩️ Volvemos al paso anterior.",
        "back_nothing": "ℹ️ No hay nada a lo que volver.",
        "idle_reminder": "⏸️ La conversación está en pausa. Escribe *continuar* para retomarla o *cancelar* para terminarla.",
        "stale_context": "⌛ Esa conversación ya no está disponible. Empecemos de nuevo.",

        # Small talk
        "greeting": [
            "¡Hola {name}! 👋 ¿En qué puedo ayudarte hoy?",
            "¡Buenas {name}! 😊 Escribe {prefix}ayuda para ver mis comandos.",
            "Hola {name}! ✨ ¡Es genial verte por aquí!",
        ],
        "thanks": [
            "¡De nada {name}! 😊 Siempre es un placer ayudar.",
            "No hay de qué {name}! 🤗 Para eso estoy aquí.",
        ],
        "farewell": [
            "¡Hasta luego {name}! 👋 Que tengas un excelente día.",
            "¡Nos vemos {name}! 😊 Vuelve pronto.",
        ],
        "help_request": "🆘 Estoy aquí para ayudarte. Escribe {prefix}ayuda para ver todos los comandos disponibles.",
        "question": [
            "🤔 Buena pregunta, {name}. Por ahora solo entiendo comandos: prueba {prefix}ayuda.",
            "Todavía no sé responder preguntas libres, {name}. Escribe {prefix}ayuda para ver lo que sé hacer.",
        ],
        "default_name": "amigo",

        # Commands
        "help_header": "📖 *Comandos disponibles*\n",
        "help_line": "{prefix}{name} - {description}",
        "help_detail": "📖 *{prefix}{name}*\n{description}\n\nUso: {usage}\nAlias: {aliases}",
        "help_footer": "\nEscribe {prefix}ayuda <comando> para más detalles.",
        "status": "🤖 *DrasBot activo*\nWhatsApp: {bridge}\nUsuarios: {users}\nTu nivel: {level}",
        "bridge_connected": "conectado",
        "bridge_disconnected": "desconectado",
        "profile": "👤 *Tu perfil*\nNombre: {name}\nNivel: {level}\nRegistrado: {registered}\nIdioma: {language}",
        "yes": "sí",
        "no": "no",
        "no_name": "(sin nombre)",
        "users_header": "👥 *Usuarios* ({total})",
        "users_line": "• {name} ({identity}) - {level}",
        "level_set": "✅ {identity} ahora tiene nivel *{level}*.",
        "level_invalid": "❌ Nivel no válido. Opciones: {options}.",
        "level_not_allowed": "🚫 No puedes asignar un nivel igual o superior al tuyo.",
        "user_not_found": "❓ No encuentro al usuario {identity}.",
        "block_done": "🔒 {identity} ha sido bloqueado.",
        "block_self": "🚫 No puedes bloquearte a ti mismo.",
        "chats_header": "💬 *Chats recientes*",
        "chats_line": "• {name} ({jid})",
        "chats_empty": "ℹ️ No hay chats.",
        "history_header": "🗂️ *Historial de {jid}*",
        "history_line": "[{time}] {sender}: {content}",
        "history_empty": "ℹ️ No hay mensajes.",
        "qr_ready": "📱 Escanea este código desde WhatsApp:\n{qr}",
        "qr_none": "✅ El bridge ya está vinculado, no hay código QR.",
        "bridge_unavailable": "⚠️ No puedo contactar con el bridge de WhatsApp ahora mismo.",
    },
    "en": {
        # Generic outcomes
        "error_generic": "😔 Something went wrong processing your message. Please try again in a moment.",
        "fallback": [
            "🤔 I didn't understand that. Send {prefix}help to see what I can do.",
            "Got it. Is there something specific I can help with? Try {prefix}help.",
        ],
        "unknown_command": "❓ I don't know the command *{prefix}{command}*. Send {prefix}help for the list.",
        "permission_denied": "🚫 You are not allowed to use *{prefix}{command}*.",
        "command_cooldown": "⏳ Wait {seconds}s before using *{prefix}{command}* again.",
        "command_usage": "ℹ️ Usage: {usage}",

        # Registration
        "registration_welcome": (
            "🎉 *Welcome to DrasBot!*\n\n"
            "Before we start, what's your name? You can send just your name "
            "or something like \"my name is Ana\"."
        ),
        "registration_prompt": "✍️ What should I call you? Send your name.",
        "registration_already": "✅ You are already registered as *{name}*. Use {prefix}name to change it.",
        "name_confirmation": [
            "✅ *Great, {name}!* Your registration is complete.",
            "🎉 *Nice to meet you, {name}!* You're registered.",
        ],
        "motivational": [
            "\n\n💡 Send {prefix}help to see what I can do.",
        ],
        "name_updated": "✅ Done, I'll call you *{name}* from now on.",
        "name_error_empty": "❌ I didn't get a name.",
        "name_error_too_short": "❌ The name must be at least {min} characters long.",
        "name_error_too_long": "❌ The name can't be longer than {max} characters.",
        "name_error_numeric": "❌ The name can't be only digits.",
        "name_error_phone": "❌ That looks like a phone number, not a name.",
        "name_error_chars": "❌ Names may only contain letters, digits, spaces, dots, hyphens and underscores.",
        "name_retry": "\n\nPlease try again ({attempt}/{max}). Send *cancel* to stop.",
        "registration_gave_up": "🛑 Too many attempts. Registration cancelled; say hi again whenever you like.",

        # Configuration
        "config_menu": (
            "⚙️ *Settings*\n\n"
            "{prefix}config language - reply language (es/en)\n"
            "{prefix}config notifications - notices (on/off)"
        ),
        "config_ask_language": "🌐 Which language do you prefer? Reply *es* or *en*.",
        "config_ask_notifications": "🔔 Do you want notifications? Reply *on* or *off*.",
        "config_invalid_value": "❌ Invalid value. Options: {options}.",
        "config_saved": "✅ Saved: {setting} = {value}.",
        "config_unknown_setting": "❓ Unknown setting *{setting}*.",

        # Context escapes
        "cancelled": "✅ Cancelled.",
        "nothing_to_cancel": "ℹ️ There is no conversation in progress.",
        "reset_done": "🔄 Conversation reset.",
        "paused": "⏸️ Conversation paused. Send *resume* to pick it up again.",
        "already_paused": "⏸️ The conversation is already paused.",
        "not_paused": "ℹ️ There is no paused conversation.",
        "resumed": "▶️ Picking up where we left off.",
        "back_done": "↩️ Back to the previous step.",
        "back_nothing": "ℹ️ There is nothing to go back to.",
        "idle_reminder": "⏸️ The conversation is paused. Send *resume* to continue or *cancel* to end it.",
        "stale_context": "⌛ That conversation is no longer available. Let's start over.",

        # Small talk
        "greeting": [
            "Hi {name}! 👋 How can I help you today?",
            "Hello {name}! 😊 Send {prefix}help to see my commands.",
        ],
        "thanks": [
            "You're welcome {name}! 😊",
            "Any time, {name}! 🤗",
        ],
        "farewell": [
            "See you {name}! 👋 Have a great day.",
            "Bye {name}! 😊 Come back soon.",
        ],
        "help_request": "🆘 I'm here to help. Send {prefix}help to see every available command.",
        "question": [
            "🤔 Good question, {name}. For now I only understand commands: try {prefix}help.",
        ],
        "default_name": "friend",

        # Commands
        "help_header": "📖 *Available commands*\n",
        "help_line": "{prefix}{name} - {description}",
        "help_detail": "📖 *{prefix}{name}*\n{description}\n\nUsage: {usage}\nAliases: {aliases}",
        "help_footer": "\nSend {prefix}help <command> for details.",
        "status": "🤖 *DrasBot is running*\nWhatsApp: {bridge}\nUsers: {users}\nYour level: {level}",
        "bridge_connected": "connected",
        "bridge_disconnected": "disconnected",
        "profile": "👤 *Your profile*\nName: {name}\nLevel: {level}\nRegistered: {registered}\nLanguage: {language}",
        "yes": "yes",
        "no": "no",
        "no_name": "(no name)",
        "users_header": "👥 *Users* ({total})",
        "users_line": "• {name} ({identity}) - {level}",
        "level_set": "✅ {identity} now has level *{level}*.",
        "level_invalid": "❌ Invalid level. Options: {options}.",
        "level_not_allowed": "🚫 You can't grant a level equal to or above your own.",
        "user_not_found": "❓ User {identity} not found.",
        "block_done": "🔒 {identity} has been blocked.",
        "block_self": "🚫 You can't block yourself.",
        "chats_header": "💬 *Recent chats*",
        "chats_line": "• {name} ({jid})",
        "chats_empty": "ℹ️ No chats.",
        "history_header": "🗂️ *History of {jid}*",
        "history_line": "[{time}] {sender}: {content}",
        "history_empty": "ℹ️ No messages.",
        "qr_ready": "📱 Scan this code from WhatsApp:\n{qr}",
        "qr_none": "✅ The bridge is already paired, no QR code.",
        "bridge_unavailable": "⚠️ I can't reach the WhatsApp bridge right now.",
    },
}


def resolve_language(lang: Optional[str]) -> str:
    """Return `lang` if we have a catalog for it, else the default language"""
    if lang and lang in TRANSLATIONS:
        return lang
    if lang:
        logger.debug(f"Unsupported language '{lang}', falling back to {DEFAULT_LANGUAGE}")
    return DEFAULT_LANGUAGE


def t(key: str, lang: Optional[str] = DEFAULT_LANGUAGE, **kwargs: Any) -> str:
    """
    Translate a key to the specified language with optional formatting.

    Args:
        key: Translation key (e.g., 'registration_welcome', 'name_confirmation')
        lang: Language code (unsupported codes fall back to the default)
        **kwargs: Format arguments for string formatting

    Returns:
        Translated and formatted string. Falls back to the default language
        if the key is missing. Lists of alternatives yield one at random.

    Examples:
        t('name_confirmation', lang='es', name='Ana')
        t('permission_denied', lang='en', prefix='!', command='nivel')
    """
    lang_dict = TRANSLATIONS[resolve_language(lang)]

    template = lang_dict.get(key, TRANSLATIONS[DEFAULT_LANGUAGE].get(key, f"[MISSING: {key}]"))
    if isinstance(template, list):
        template = random.choice(template)

    if kwargs:
        try:
            return template.format(**kwargs)
        except KeyError as e:
            logger.error(f"Translation formatting error for key '{key}': {e}")
            return template

    return template
