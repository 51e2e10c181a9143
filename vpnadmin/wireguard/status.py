#!/usr/bin/env python3
#
# vpnadmin/wireguard/status.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Connection state derived from a peer's latest handshake.

The result depends only on the handshake timestamp and the current time and
is recomputed on every read.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Union

from ..utils.time import ensure_utc, from_epoch, utcnow

# Handshake age below which a peer is "connected"
CONNECTED_THRESHOLD = timedelta(minutes=5)
# Handshake age below which a peer is "idle" rather than "disconnected"
IDLE_THRESHOLD = timedelta(minutes=30)

Handshake = Union[datetime, int, None]


class PeerStatus(str, Enum):
	CONNECTED = "connected"
	IDLE = "idle"
	DISCONNECTED = "disconnected"


def _as_datetime(last_handshake: Handshake) -> Optional[datetime]:
	if last_handshake is None or isinstance(last_handshake, datetime):
		return ensure_utc(last_handshake)
	return from_epoch(last_handshake)


def derive_status(last_handshake: Handshake, now: Optional[datetime] = None) -> PeerStatus:
	"""Classify a peer by the age of its latest handshake.

	Args:
		last_handshake: Aware datetime, epoch seconds (0 = never), or None.
		now: Reference time; defaults to the current UTC time.
	"""
	handshake = _as_datetime(last_handshake)
	if handshake is None:
		return PeerStatus.DISCONNECTED

	age = ensure_utc(now or utcnow()) - handshake
	if age < CONNECTED_THRESHOLD:
		return PeerStatus.CONNECTED
	if age < IDLE_THRESHOLD:
		return PeerStatus.IDLE
	return PeerStatus.DISCONNECTED


def last_seen(last_handshake: Handshake, now: Optional[datetime] = None) -> str:
	"""Human-readable age of the latest handshake ("5m ago", "Never", ...)."""
	handshake = _as_datetime(last_handshake)
	if handshake is None:
		return "Never"

	seconds = int((ensure_utc(now or utcnow()) - handshake).total_seconds())
	minutes = seconds // 60
	if minutes < 1:
		return "just now"
	if minutes < 60:
		return f"{minutes}m ago"
	hours = minutes // 60
	if hours < 24:
		return f"{hours}h ago"
	return f"{hours // 24}d ago"


def count_by_status(statuses) -> dict[str, int]:
	"""Tally an iterable of PeerStatus values, every state present."""
	counts = {status.value: 0 for status in PeerStatus}
	for status in statuses:
		counts[PeerStatus(status).value] += 1
	return counts
