#!/usr/bin/env python3
#
# vpnadmin/db/sqlite_sessions.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Session storage: bearer tokens are persisted only as SHA-256 digests."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Optional

from ..utils.crypto import hash_token
from ..utils.time import utcnow
from .sqlite_runtime import transaction


def create_session(
	conn: sqlite3.Connection,
	user_id: int,
	token: str,
	expires_at: datetime,
	*,
	ip_address: Optional[str] = None,
	user_agent: Optional[str] = None,
) -> int:
	"""Store a new session (hashed token) and return its ID."""
	with transaction(conn):
		cur = conn.execute(
			"""
			INSERT INTO sessions (user_id, token_hash, expires_at, ip_address, user_agent, created_at)
			VALUES (?, ?, ?, ?, ?, ?)
			""",
			(user_id, hash_token(token), expires_at, ip_address, user_agent, utcnow()),
		)
		return cur.lastrowid


def get_session(conn: sqlite3.Connection, token: str) -> sqlite3.Row | None:
	"""Get the raw session row for a token regardless of validity."""
	cur = conn.execute("SELECT * FROM sessions WHERE token_hash = ?", (hash_token(token),))
	return cur.fetchone()


def get_user_by_session(
	conn: sqlite3.Connection,
	token: str,
	now: Optional[datetime] = None,
) -> sqlite3.Row | None:
	"""Resolve a token to its user.

	A session counts only while ``now < expires_at`` and the owner is active.
	"""
	cur = conn.execute(
		"""
		SELECT u.* FROM users u
		JOIN sessions s ON u.id = s.user_id
		WHERE s.token_hash = ? AND s.expires_at > ? AND u.status = 'active'
		""",
		(hash_token(token), now or utcnow()),
	)
	return cur.fetchone()


def delete_session(conn: sqlite3.Connection, token: str) -> bool:
	"""Delete a session (logout). Returns True if it existed."""
	with transaction(conn):
		cur = conn.execute("DELETE FROM sessions WHERE token_hash = ?", (hash_token(token),))
		return cur.rowcount > 0


def delete_user_sessions(conn: sqlite3.Connection, user_id: int) -> int:
	"""Delete all sessions of a user."""
	with transaction(conn):
		cur = conn.execute("DELETE FROM sessions WHERE user_id = ?", (user_id,))
		return cur.rowcount


def delete_expired_sessions(conn: sqlite3.Connection, now: Optional[datetime] = None) -> int:
	"""Delete all expired sessions. Returns count of deleted rows."""
	with transaction(conn):
		cur = conn.execute("DELETE FROM sessions WHERE expires_at <= ?", (now or utcnow(),))
		return cur.rowcount
