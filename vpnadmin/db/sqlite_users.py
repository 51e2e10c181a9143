#!/usr/bin/env python3
#
# vpnadmin/db/sqlite_users.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""User CRUD, last-admin protection, and per-account lockout counters."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta
from typing import Optional

from ..errors import ConstraintError, NotFoundError
from ..utils.crypto import hash_password
from ..utils.time import utcnow
from .sqlite_runtime import transaction


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_user_by_username(conn: sqlite3.Connection, username: str) -> sqlite3.Row | None:
	"""Get a user by username (stored lowercase, so equality uses the index)."""
	cur = conn.execute("SELECT * FROM users WHERE username = ?", (username.strip().lower(),))
	return cur.fetchone()


def get_user_by_id(conn: sqlite3.Connection, user_id: int) -> Optional[sqlite3.Row]:
	"""Get a user by ID."""
	cur = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,))
	return cur.fetchone()


def get_all_users(conn: sqlite3.Connection) -> list[sqlite3.Row]:
	"""Get all users."""
	cur = conn.execute("SELECT * FROM users ORDER BY username")
	return cur.fetchall()


def count_active_admins(conn: sqlite3.Connection) -> int:
	"""Count users that hold the admin role and are active."""
	cur = conn.execute("SELECT COUNT(*) FROM users WHERE role = 'admin' AND status = 'active'")
	return cur.fetchone()[0]


def _is_active_admin(row: sqlite3.Row) -> bool:
	return row["role"] == "admin" and row["status"] == "active"


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def create_user(
	conn: sqlite3.Connection,
	username: str,
	password: str,
	*,
	email: Optional[str] = None,
	role: str = "user",
	status: str = "active",
) -> int:
	"""Create a new user and return the user ID.

	Raises:
		ConstraintError: If the username or email is already taken.
	"""
	now = utcnow()
	try:
		with transaction(conn):
			cur = conn.execute(
				"""
				INSERT INTO users (username, email, password_hash, role, status, created_at, updated_at)
				VALUES (?, ?, ?, ?, ?, ?, ?)
				""",
				(username.strip().lower(), email, hash_password(password), role, status, now, now),
			)
			return cur.lastrowid
	except sqlite3.IntegrityError as exc:
		raise ConstraintError("Username or email already exists") from exc


def update_user(
	conn: sqlite3.Connection,
	user_id: int,
	*,
	email: Optional[str] = None,
	role: Optional[str] = None,
	status: Optional[str] = None,
) -> sqlite3.Row:
	"""Update email, role and/or status; returns the updated row.

	The last-admin check and the write share one immediate transaction so two
	concurrent demotions can't both pass the count.

	Raises:
		NotFoundError: If the user does not exist.
		ConstraintError: If the change would leave no active admin, or the
			email is already in use.
	"""
	updates: list[str] = []
	params: list = []
	if email is not None:
		updates.append("email = ?")
		params.append(email)
	if role is not None:
		updates.append("role = ?")
		params.append(role)
	if status is not None:
		updates.append("status = ?")
		params.append(status)

	try:
		with transaction(conn, immediate=True):
			user = get_user_by_id(conn, user_id)
			if not user:
				raise NotFoundError(f"User {user_id} not found")
			if not updates:
				return user

			loses_admin = (role is not None and role != "admin") or (status is not None and status != "active")
			if _is_active_admin(user) and loses_admin and count_active_admins(conn) <= 1:
				raise ConstraintError("Cannot demote or deactivate the last active admin")

			updates.append("updated_at = ?")
			params.extend([utcnow(), user_id])
			conn.execute(f"UPDATE users SET {', '.join(updates)} WHERE id = ?", params)
	except sqlite3.IntegrityError as exc:
		raise ConstraintError("Email already exists") from exc

	return get_user_by_id(conn, user_id)


def set_password(conn: sqlite3.Connection, user_id: int, password: str) -> None:
	"""Replace a user's password hash."""
	with transaction(conn):
		cur = conn.execute(
			"UPDATE users SET password_hash = ?, updated_at = ? WHERE id = ?",
			(hash_password(password), utcnow(), user_id),
		)
		if cur.rowcount == 0:
			raise NotFoundError(f"User {user_id} not found")


def delete_user(conn: sqlite3.Connection, user_id: int) -> sqlite3.Row:
	"""Hard-delete a user and return the deleted row.

	Raises:
		NotFoundError: If the user does not exist.
		ConstraintError: If the user is the last active admin.
	"""
	with transaction(conn, immediate=True):
		user = get_user_by_id(conn, user_id)
		if not user:
			raise NotFoundError(f"User {user_id} not found")
		if _is_active_admin(user) and count_active_admins(conn) <= 1:
			raise ConstraintError("Cannot delete the last active admin")
		conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
	return user


# ---------------------------------------------------------------------------
# Login bookkeeping (per-user row, immediate transactions)
# ---------------------------------------------------------------------------

def clear_expired_lock(conn: sqlite3.Connection, user_id: int, now: datetime) -> bool:
	"""Reset the failure counter of a user whose lock has run out.

	Returns True if a stale lock was cleared.
	"""
	with transaction(conn, immediate=True):
		row = conn.execute("SELECT locked_until FROM users WHERE id = ?", (user_id,)).fetchone()
		if not row or row["locked_until"] is None or row["locked_until"] > now:
			return False
		conn.execute(
			"UPDATE users SET failed_login_attempts = 0, locked_until = NULL WHERE id = ?",
			(user_id,),
		)
		return True


def record_failed_login(
	conn: sqlite3.Connection,
	user_id: int,
	now: datetime,
	*,
	max_attempts: int,
	lock_duration: timedelta,
) -> tuple[int, Optional[datetime], bool]:
	"""Increment the failure counter and lock the account at *max_attempts*.

	The lock is re-read inside the write transaction. If a concurrent attempt
	has locked the account meanwhile, nothing is incremented.

	Returns:
		Tuple of (failed_count, locked_until, newly_locked). locked_until is
		set whenever the account is locked after the call; newly_locked is
		True only for the failure that set the lock.
	"""
	with transaction(conn, immediate=True):
		row = conn.execute(
			"SELECT failed_login_attempts, locked_until FROM users WHERE id = ?",
			(user_id,),
		).fetchone()
		if not row:
			raise NotFoundError(f"User {user_id} not found")
		current_lock = row["locked_until"]
		if current_lock is not None and current_lock > now:
			return row["failed_login_attempts"], current_lock, False

		# An expired lock starts a fresh count
		previous = 0 if current_lock is not None else row["failed_login_attempts"]
		failed = previous + 1
		locked_until = now + lock_duration if failed >= max_attempts else None
		conn.execute(
			"UPDATE users SET failed_login_attempts = ?, locked_until = ? WHERE id = ?",
			(failed, locked_until, user_id),
		)
	return failed, locked_until, locked_until is not None


def record_successful_login(
	conn: sqlite3.Connection,
	user_id: int,
	ip_address: Optional[str],
	now: datetime,
) -> bool:
	"""Reset lockout state and stamp the last login.

	Returns False without touching the row if the account is locked, e.g.
	by a concurrent failed attempt.
	"""
	with transaction(conn, immediate=True):
		cur = conn.execute(
			"""
			UPDATE users
			SET failed_login_attempts = 0, locked_until = NULL,
				last_login_at = ?, last_login_ip = ?
			WHERE id = ? AND (locked_until IS NULL OR locked_until <= ?)
			""",
			(now, ip_address, user_id, now),
		)
		return cur.rowcount > 0


def unlock_user(conn: sqlite3.Connection, user_id: int) -> None:
	"""Clear the failure counter and any lock (admin action)."""
	with transaction(conn):
		cur = conn.execute(
			"UPDATE users SET failed_login_attempts = 0, locked_until = NULL, updated_at = ? WHERE id = ?",
			(utcnow(), user_id),
		)
		if cur.rowcount == 0:
			raise NotFoundError(f"User {user_id} not found")
