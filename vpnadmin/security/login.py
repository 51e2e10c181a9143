#!/usr/bin/env python3
#
# vpnadmin/security/login.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Credential validation, account lockout and session issuance.

Each login attempt moves ``UNAUTHENTICATED -> VALIDATING`` and ends in one of
``AUTHENTICATED``, ``LOCKED`` or ``REJECTED``. Every outcome appends at least
one security event. Callers must not reveal to the client which of
``LOCKED``/``REJECTED`` happened.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from ..db import sqlite_sessions, sqlite_users
from ..utils.crypto import DUMMY_PASSWORD_HASH, new_token, session_expiry, verify_password
from ..utils.time import utcnow
from . import events
from .events import ClientInfo, Severity

_log = logging.getLogger(__name__)

MAX_FAILED_ATTEMPTS = 5
LOCK_DURATION = timedelta(hours=1)
SESSION_HOURS = 24


class LoginState(str, Enum):
	UNAUTHENTICATED = "unauthenticated"
	VALIDATING = "validating"
	AUTHENTICATED = "authenticated"
	LOCKED = "locked"
	REJECTED = "rejected"


@dataclass(frozen=True)
class LockoutPolicy:
	max_failed_attempts: int = MAX_FAILED_ATTEMPTS
	lock_duration: timedelta = LOCK_DURATION
	session_hours: int = SESSION_HOURS


@dataclass(frozen=True)
class IssuedSession:
	"""A freshly created session; ``token`` is only ever shown here."""
	token: str
	user_id: int
	expires_at: datetime


@dataclass(frozen=True)
class LoginResult:
	state: LoginState
	user_id: Optional[int] = None
	session: Optional[IssuedSession] = None
	reason: Optional[str] = None
	locked_until: Optional[datetime] = None

	@property
	def ok(self) -> bool:
		return self.state is LoginState.AUTHENTICATED


def issue_session(
	conn: sqlite3.Connection,
	user_id: int,
	*,
	client: ClientInfo,
	hours: int = SESSION_HOURS,
	now: Optional[datetime] = None,
) -> IssuedSession:
	"""Create a session with a random bearer token and fixed expiry."""
	token = new_token()
	expires_at = session_expiry(hours, now)
	sqlite_sessions.create_session(
		conn,
		user_id,
		token,
		expires_at,
		ip_address=client.ip_address,
		user_agent=client.user_agent,
	)
	return IssuedSession(token=token, user_id=user_id, expires_at=expires_at)


def _blocked(
	conn: sqlite3.Connection,
	user: sqlite3.Row,
	locked_until: datetime,
	client: ClientInfo,
) -> LoginResult:
	events.record_event(
		conn,
		events.LOGIN_BLOCKED,
		client=client,
		user_id=user["id"],
		details={"username": user["username"], "locked_until": locked_until.isoformat()},
		severity=Severity.WARNING,
	)
	return LoginResult(LoginState.LOCKED, user_id=user["id"], reason="locked", locked_until=locked_until)


def authenticate(
	conn: sqlite3.Connection,
	username: str,
	password: str,
	*,
	client: Optional[ClientInfo] = None,
	policy: Optional[LockoutPolicy] = None,
	now: Optional[datetime] = None,
) -> LoginResult:
	"""Run one login attempt through the lockout state machine.

	The lock is checked once up front and again inside each counter update,
	so concurrent attempts on one account cannot push the counter past the
	threshold or unlock it with a racing correct password.
	"""
	client = client or ClientInfo()
	policy = policy or LockoutPolicy()
	now = now or utcnow()

	user = sqlite_users.get_user_by_username(conn, username)

	# Always pay for one hash verification so response time doesn't reveal
	# whether the account exists
	password_valid = verify_password(password, user["password_hash"] if user else DUMMY_PASSWORD_HASH)

	if user is None:
		events.record_event(
			conn,
			events.LOGIN_FAILED,
			client=client,
			details={"username": username, "reason": "unknown_user"},
			severity=Severity.WARNING,
		)
		return LoginResult(LoginState.REJECTED, reason="unknown_user")

	user_id = user["id"]
	locked_until = user["locked_until"]
	if locked_until is not None:
		if locked_until > now:
			return _blocked(conn, user, locked_until, client)
		if sqlite_users.clear_expired_lock(conn, user_id, now):
			_log.info("LOGIN_LOCK_EXPIRED user_id=%d", user_id)

	if not password_valid or user["status"] != "active":
		reason = "bad_password" if not password_valid else f"status_{user['status']}"
		failed, locked_until, newly_locked = sqlite_users.record_failed_login(
			conn,
			user_id,
			now,
			max_attempts=policy.max_failed_attempts,
			lock_duration=policy.lock_duration,
		)
		if locked_until is not None and not newly_locked:
			return _blocked(conn, user, locked_until, client)

		events.record_event(
			conn,
			events.LOGIN_FAILED,
			client=client,
			user_id=user_id,
			details={"username": user["username"], "reason": reason, "failed_attempts": failed},
			severity=Severity.WARNING,
		)
		if newly_locked:
			events.record_event(
				conn,
				events.ACCOUNT_LOCKED,
				client=client,
				user_id=user_id,
				details={
					"username": user["username"],
					"failed_attempts": failed,
					"locked_until": locked_until.isoformat(),
				},
				severity=Severity.ERROR,
			)
			return LoginResult(LoginState.LOCKED, user_id=user_id, reason=reason, locked_until=locked_until)
		return LoginResult(LoginState.REJECTED, user_id=user_id, reason=reason)

	if not sqlite_users.record_successful_login(conn, user_id, client.ip_address, now):
		current = sqlite_users.get_user_by_id(conn, user_id)
		if current is not None and current["locked_until"] is not None:
			return _blocked(conn, current, current["locked_until"], client)
		# Deleted between lookup and update
		events.record_event(
			conn,
			events.LOGIN_FAILED,
			client=client,
			user_id=user_id,
			details={"username": user["username"], "reason": "user_removed"},
			severity=Severity.WARNING,
		)
		return LoginResult(LoginState.REJECTED, user_id=user_id, reason="user_removed")

	session = issue_session(conn, user_id, client=client, hours=policy.session_hours, now=now)
	events.record_event(
		conn,
		events.LOGIN_SUCCESS,
		client=client,
		user_id=user_id,
		details={"username": user["username"]},
		severity=Severity.INFO,
	)
	return LoginResult(LoginState.AUTHENTICATED, user_id=user_id, session=session)
