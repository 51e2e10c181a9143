#!/usr/bin/env python3
#
# vpnadmin/security/events.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Security event recording."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from ..db.sqlite_security_events import insert_security_event

_log = logging.getLogger(__name__)


class Severity(str, Enum):
	INFO = "info"
	WARNING = "warning"
	ERROR = "error"
	CRITICAL = "critical"


_LOG_LEVELS = {
	Severity.INFO: logging.INFO,
	Severity.WARNING: logging.WARNING,
	Severity.ERROR: logging.ERROR,
	Severity.CRITICAL: logging.CRITICAL,
}


# Action tags
LOGIN_SUCCESS = "login_success"
LOGIN_FAILED = "login_failed"
LOGIN_BLOCKED = "login_blocked"
ACCOUNT_LOCKED = "account_locked"
ACCOUNT_UNLOCKED = "account_unlocked"
LOGOUT = "logout"
UNAUTHORIZED_ACCESS = "unauthorized_api_access"
INSUFFICIENT_PERMISSIONS = "insufficient_permissions"
RATE_LIMIT_EXCEEDED = "api_rate_limit_exceeded"
USER_CREATED = "user_created"
USER_UPDATED = "user_updated"
USER_DELETED = "user_deleted"
USER_DELETION_BLOCKED = "user_deletion_blocked"
PASSWORD_CHANGED = "password_changed"
PEER_CREATED = "peer_created"
PEER_UPDATED = "peer_updated"
PEER_DELETED = "peer_deleted"
INFRASTRUCTURE_ERROR = "infrastructure_error"


@dataclass(frozen=True)
class ClientInfo:
	"""Who is on the other end of a request."""
	ip_address: Optional[str] = None
	user_agent: Optional[str] = None


def record_event(
	conn: sqlite3.Connection,
	action: str,
	*,
	client: Optional[ClientInfo] = None,
	user_id: Optional[int] = None,
	details: Optional[dict[str, Any]] = None,
	severity: Severity = Severity.INFO,
) -> int:
	"""Append a security event and mirror it to the application log."""
	client = client or ClientInfo()
	severity = Severity(severity)
	event_id = insert_security_event(
		conn,
		action,
		user_id=user_id,
		ip_address=client.ip_address,
		user_agent=client.user_agent,
		details=details,
		severity=severity.value,
	)
	_log.log(
		_LOG_LEVELS[severity],
		"SECURITY_EVENT action=%s user_id=%s ip=%s details=%s",
		action,
		user_id,
		client.ip_address,
		details or {},
	)
	return event_id
