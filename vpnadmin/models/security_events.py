#!/usr/bin/env python3
#
# vpnadmin/models/security_events.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Security event Pydantic models."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel

SeverityLiteral = Literal["info", "warning", "error", "critical"]


class SecurityEventPublic(BaseModel):
	id: int
	user_id: Optional[int] = None
	action: str
	ip_address: Optional[str] = None
	user_agent: Optional[str] = None
	details: dict[str, Any] = {}
	severity: SeverityLiteral
	created_at: datetime

	@classmethod
	def from_row(cls, row: sqlite3.Row) -> "SecurityEventPublic":
		raw = row["details"]
		try:
			details = json.loads(raw) if raw else {}
		except json.JSONDecodeError:
			details = {"raw": raw}
		return cls(
			id=row["id"],
			user_id=row["user_id"],
			action=row["action"],
			ip_address=row["ip_address"],
			user_agent=row["user_agent"],
			details=details if isinstance(details, dict) else {"value": details},
			severity=row["severity"],
			created_at=row["created_at"],
		)
