"""
Database queries, re-exported so callers can use `from drasbot.db import queries`.

Module organization:
- user.py: user records, activity, listings
- context.py: the single active conversation context per user
- command_log.py: append-only command audit log
"""

# User operations
from drasbot.db.queries.user import (
    get_user,
    create_user,
    update_user,
    touch_user_activity,
    count_users,
    list_users,
)

# Context operations
from drasbot.db.queries.context import (
    get_active_context,
    save_active_context,
    deactivate_context,
    list_expired_context_users,
)

# Command log operations
from drasbot.db.queries.command_log import (
    insert_command_log,
    get_recent_command_logs,
)

__all__ = [
    "get_user",
    "create_user",
    "update_user",
    "touch_user_activity",
    "count_users",
    "list_users",
    "get_active_context",
    "save_active_context",
    "deactivate_context",
    "list_expired_context_users",
    "insert_command_log",
    "get_recent_command_logs",
]
