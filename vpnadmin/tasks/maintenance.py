#!/usr/bin/env python3
#
# vpnadmin/tasks/maintenance.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Periodic maintenance: expired session cleanup and rate-limit sweeps."""

from __future__ import annotations

import logging
from pathlib import Path

import aiosqlite

from ..db import sqlite_runtime  # noqa: F401  (registers datetime adapters)
from ..utils.rate_limit import RateLimitStore
from ..utils.time import utcnow

_log = logging.getLogger(__name__)

__all__ = [
	"SESSION_SWEEP_INTERVAL",
	"RATE_LIMIT_SWEEP_INTERVAL",
	"cleanup_expired_sessions",
	"sweep_rate_limits",
]

SESSION_SWEEP_INTERVAL = 3600
RATE_LIMIT_SWEEP_INTERVAL = 300


async def cleanup_expired_sessions(db_path: Path) -> int:
	"""Delete sessions whose expiry has passed.

	Returns:
		Number of deleted sessions.
	"""
	if not Path(db_path).exists():
		_log.warning("MAINTENANCE SQLite database not found at %s", db_path)
		return 0

	try:
		async with aiosqlite.connect(db_path) as db:
			cursor = await db.execute("DELETE FROM sessions WHERE expires_at <= ?", (utcnow(),))
			await db.commit()
			deleted = cursor.rowcount
	except Exception:
		_log.exception("MAINTENANCE session cleanup failed")
		raise

	if deleted > 0:
		_log.info("MAINTENANCE cleaned up %d expired sessions", deleted)
	else:
		_log.debug("MAINTENANCE no expired sessions to clean up")
	return deleted


async def sweep_rate_limits(store: RateLimitStore) -> int:
	"""Forget clients without requests in the current window."""
	dropped = store.sweep()
	if dropped:
		_log.info("MAINTENANCE rate limiter forgot %d idle clients", dropped)
	return dropped
