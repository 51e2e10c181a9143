#!/usr/bin/env python3
#
# vpnadmin/db/sqlite.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""SQLite access layer facade.

Re-exports the table modules so callers can ``from ..db import sqlite as
sqlite_db`` and use a single namespace.
"""

from __future__ import annotations

from .sqlite_peers import (
	create_peer,
	delete_peer,
	get_all_peers,
	get_peer_by_id,
	get_peer_by_public_key,
	toggle_peer,
	update_peer,
	update_peers_telemetry_batch,
)
from .sqlite_runtime import close_all_connections, close_connection, connect, transaction
from .sqlite_schema import ensure_default_admin, init_schema
from .sqlite_security_events import count_security_events, insert_security_event, list_security_events
from .sqlite_sessions import (
	create_session,
	delete_expired_sessions,
	delete_session,
	delete_user_sessions,
	get_session,
	get_user_by_session,
)
from .sqlite_users import (
	clear_expired_lock,
	count_active_admins,
	create_user,
	delete_user,
	get_all_users,
	get_user_by_id,
	get_user_by_username,
	record_failed_login,
	record_successful_login,
	set_password,
	unlock_user,
	update_user,
)

__all__ = [
	"clear_expired_lock",
	"close_all_connections",
	"close_connection",
	"connect",
	"count_active_admins",
	"count_security_events",
	"create_peer",
	"create_session",
	"create_user",
	"delete_expired_sessions",
	"delete_peer",
	"delete_session",
	"delete_user",
	"delete_user_sessions",
	"ensure_default_admin",
	"get_all_peers",
	"get_all_users",
	"get_peer_by_id",
	"get_peer_by_public_key",
	"get_session",
	"get_user_by_id",
	"get_user_by_session",
	"get_user_by_username",
	"init_schema",
	"insert_security_event",
	"list_security_events",
	"record_failed_login",
	"record_successful_login",
	"set_password",
	"toggle_peer",
	"transaction",
	"unlock_user",
	"update_peer",
	"update_peers_telemetry_batch",
	"update_user",
]
