#!/usr/bin/env python3
#
# vpnadmin/api/security_events.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Read-only access to the security event log (admin only)."""

from __future__ import annotations

import sqlite3
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..db import sqlite as sqlite_db
from ..models.security_events import SecurityEventPublic, SeverityLiteral
from ..utils.deps import get_conn
from .auth import require_admin
from .response import ok_response

router = APIRouter(tags=["security"])


@router.get("")
def list_events(
	limit: int = Query(100, ge=1, le=1000),
	severity: Optional[SeverityLiteral] = None,
	action: Optional[str] = Query(None, max_length=64),
	user_id: Optional[int] = None,
	conn: sqlite3.Connection = Depends(get_conn),
	_: sqlite3.Row = Depends(require_admin),
):
	"""Most recent events first, optionally filtered."""
	rows = sqlite_db.list_security_events(
		conn,
		limit=limit,
		severity=severity,
		user_id=user_id,
		action=action,
	)
	data = [SecurityEventPublic.from_row(row).model_dump(mode="json") for row in rows]
	return ok_response(data=data, count=len(data))
