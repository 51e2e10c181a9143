#!/usr/bin/env python3
#
# vpnadmin/utils/time.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Timezone-aware time utilities."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
	"""Return the current UTC time as a timezone-aware datetime."""
	return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
	"""Ensure a datetime is timezone-aware and in UTC.

	Raises:
		ValueError: If the datetime is naive (no timezone info)
	"""
	if dt is None:
		return None
	if dt.tzinfo is None:
		raise ValueError("Naive datetime not allowed - must be timezone-aware")
	return dt.astimezone(timezone.utc)


def from_epoch(ts: Optional[int]) -> Optional[datetime]:
	"""Convert a WireGuard handshake epoch to a UTC datetime.

	WireGuard reports ``0`` for peers that never completed a handshake,
	which maps to None here.
	"""
	if not ts:
		return None
	return datetime.fromtimestamp(int(ts), tz=timezone.utc)
