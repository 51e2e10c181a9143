#!/usr/bin/env python3
#
# vpnadmin/db/sqlite_security_events.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Append-only security event log."""

from __future__ import annotations

import json
import sqlite3
from typing import Any, Optional

from ..utils.time import utcnow
from .sqlite_runtime import transaction

SEVERITIES = ("info", "warning", "error", "critical")


def insert_security_event(
	conn: sqlite3.Connection,
	action: str,
	*,
	user_id: Optional[int] = None,
	ip_address: Optional[str] = None,
	user_agent: Optional[str] = None,
	details: Optional[dict[str, Any]] = None,
	severity: str = "info",
) -> int:
	"""Append one event row and return its ID."""
	if severity not in SEVERITIES:
		raise ValueError(f"Unknown severity: {severity!r}")
	with transaction(conn):
		cur = conn.execute(
			"""
			INSERT INTO security_events (user_id, action, ip_address, user_agent, details, severity, created_at)
			VALUES (?, ?, ?, ?, ?, ?, ?)
			""",
			(
				user_id,
				action,
				ip_address,
				user_agent,
				json.dumps(details or {}, default=str, sort_keys=True),
				severity,
				utcnow(),
			),
		)
		return cur.lastrowid


def list_security_events(
	conn: sqlite3.Connection,
	*,
	limit: int = 100,
	severity: Optional[str] = None,
	user_id: Optional[int] = None,
	action: Optional[str] = None,
) -> list[sqlite3.Row]:
	"""Return the newest events first, optionally filtered."""
	clauses: list[str] = []
	params: list[Any] = []
	if severity:
		clauses.append("severity = ?")
		params.append(severity)
	if user_id is not None:
		clauses.append("user_id = ?")
		params.append(user_id)
	if action:
		clauses.append("action = ?")
		params.append(action)
	where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
	params.append(max(1, limit))
	cur = conn.execute(
		f"SELECT * FROM security_events {where} ORDER BY id DESC LIMIT ?",
		params,
	)
	return cur.fetchall()


def count_security_events(conn: sqlite3.Connection, action: Optional[str] = None) -> int:
	"""Count events, optionally for a single action."""
	if action:
		cur = conn.execute("SELECT COUNT(*) FROM security_events WHERE action = ?", (action,))
	else:
		cur = conn.execute("SELECT COUNT(*) FROM security_events")
	return cur.fetchone()[0]
