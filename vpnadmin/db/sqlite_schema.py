#!/usr/bin/env python3
#
# vpnadmin/db/sqlite_schema.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""SQLite schema initialization and bootstrap routines."""

from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from ..utils.crypto import hash_password, new_password
from ..utils.time import utcnow
from .sqlite_runtime import transaction

_log = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Schema Initialization
# ─────────────────────────────────────────────────────────────────────────────


def init_schema(conn: sqlite3.Connection) -> None:
	"""Create the required database schema."""
	with transaction(conn):
		conn.execute(
			"""
			CREATE TABLE IF NOT EXISTS users (
				id INTEGER PRIMARY KEY AUTOINCREMENT,
				username TEXT NOT NULL UNIQUE,
				email TEXT UNIQUE,
				password_hash TEXT NOT NULL,
				role TEXT NOT NULL DEFAULT 'user'
					CHECK (role IN ('user', 'moderator', 'admin')),
				status TEXT NOT NULL DEFAULT 'active'
					CHECK (status IN ('active', 'inactive', 'suspended')),
				failed_login_attempts INTEGER NOT NULL DEFAULT 0,
				locked_until timestamp,
				last_login_at timestamp,
				last_login_ip TEXT,
				created_at timestamp NOT NULL,
				updated_at timestamp NOT NULL
			)
			"""
		)
		conn.execute("CREATE INDEX IF NOT EXISTS idx_users_role_status ON users(role, status)")

		# Sessions: only the SHA-256 of the bearer token is stored
		conn.execute(
			"""
			CREATE TABLE IF NOT EXISTS sessions (
				id INTEGER PRIMARY KEY AUTOINCREMENT,
				user_id INTEGER NOT NULL,
				token_hash TEXT NOT NULL UNIQUE,
				expires_at timestamp NOT NULL,
				ip_address TEXT,
				user_agent TEXT,
				created_at timestamp NOT NULL,
				FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
			)
			"""
		)
		conn.execute("CREATE INDEX IF NOT EXISTS idx_sessions_expires_at ON sessions(expires_at)")
		conn.execute("CREATE INDEX IF NOT EXISTS idx_sessions_user_id ON sessions(user_id)")

		# Append-only; no foreign key so deleting a user leaves its history intact
		conn.execute(
			"""
			CREATE TABLE IF NOT EXISTS security_events (
				id INTEGER PRIMARY KEY AUTOINCREMENT,
				user_id INTEGER,
				action TEXT NOT NULL,
				ip_address TEXT,
				user_agent TEXT,
				details TEXT,
				severity TEXT NOT NULL DEFAULT 'info'
					CHECK (severity IN ('info', 'warning', 'error', 'critical')),
				created_at timestamp NOT NULL
			)
			"""
		)
		conn.execute("CREATE INDEX IF NOT EXISTS idx_security_events_created_at ON security_events(created_at)")
		conn.execute("CREATE INDEX IF NOT EXISTS idx_security_events_user_id ON security_events(user_id)")

		conn.execute(
			"""
			CREATE TABLE IF NOT EXISTS peers (
				id INTEGER PRIMARY KEY AUTOINCREMENT,
				public_key TEXT NOT NULL UNIQUE,
				name TEXT NOT NULL,
				address TEXT NOT NULL,
				allowed_ips TEXT NOT NULL,
				endpoint TEXT,
				is_enabled INTEGER NOT NULL DEFAULT 1,
				bytes_received INTEGER NOT NULL DEFAULT 0 CHECK (bytes_received >= 0),
				bytes_sent INTEGER NOT NULL DEFAULT 0 CHECK (bytes_sent >= 0),
				last_handshake_at INTEGER,
				created_at timestamp NOT NULL,
				updated_at timestamp NOT NULL
			)
			"""
		)
		conn.execute("CREATE UNIQUE INDEX IF NOT EXISTS idx_peers_address ON peers(address)")


def ensure_default_admin(conn: sqlite3.Connection, password: Optional[str] = None) -> None:
	"""Create the bootstrap admin user if no users exist.

	Without an explicit *password* a random one is generated and logged once.
	"""
	now = utcnow()
	generated = password is None
	password = password or new_password()
	try:
		conn.execute("BEGIN IMMEDIATE")
		count = conn.execute("SELECT COUNT(*) FROM users").fetchone()[0]
		if count == 0:
			conn.execute(
				"""
				INSERT INTO users (username, password_hash, role, status, created_at, updated_at)
				VALUES ('admin', ?, 'admin', 'active', ?, ?)
				""",
				(hash_password(password), now, now),
			)
			if generated:
				_log.warning("Created default admin user (username: admin, password: %s) - CHANGE THIS!", password)
			else:
				_log.info("Created default admin user (username: admin)")
		conn.commit()
	except sqlite3.IntegrityError:
		conn.rollback()  # another worker beat us
	except Exception:
		conn.rollback()
		raise
