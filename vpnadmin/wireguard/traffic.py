#!/usr/bin/env python3
#
# vpnadmin/wireguard/traffic.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Byte formatting and traffic totals across peers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Union

from ..errors import ValidationError

_UNITS = ("B", "KB", "MB", "GB", "TB")
_STEP = 1024


def _check_counter(value: Any, name: str) -> int:
	if isinstance(value, bool) or not isinstance(value, int):
		raise ValidationError(f"{name} must be an integer, got {value!r}")
	if value < 0:
		raise ValidationError(f"{name} must not be negative, got {value}")
	return value


def format_bytes(n: int) -> str:
	"""Format a byte count with binary units and two decimals.

	>>> format_bytes(0)
	'0 B'
	>>> format_bytes(1536)
	'1.50 KB'

	Raises:
		ValidationError: If *n* is negative or not an integer.
	"""
	n = _check_counter(n, "byte count")
	if n == 0:
		return "0 B"

	value = float(n)
	unit = 0
	while value >= _STEP and unit < len(_UNITS) - 1:
		value /= _STEP
		unit += 1
	return f"{value:.2f} {_UNITS[unit]}"


@dataclass(frozen=True)
class PeerCounters:
	"""Byte counters of one peer."""
	bytes_received: int
	bytes_sent: int

	@property
	def total(self) -> int:
		return self.bytes_received + self.bytes_sent


@dataclass(frozen=True)
class TrafficSummary:
	"""Totals over a set of peers."""
	total_received: int = 0
	total_sent: int = 0
	per_peer_total: list[int] = field(default_factory=list)
	average_per_peer: float = 0

	@property
	def total(self) -> int:
		return self.total_received + self.total_sent

	@property
	def peer_count(self) -> int:
		return len(self.per_peer_total)

	def formatted(self) -> dict[str, str]:
		return {
			"total_received": format_bytes(self.total_received),
			"total_sent": format_bytes(self.total_sent),
			"total": format_bytes(self.total),
			"average_per_peer": format_bytes(int(self.average_per_peer)),
		}

	def as_dict(self) -> dict[str, Any]:
		return {
			"total_received": self.total_received,
			"total_sent": self.total_sent,
			"total": self.total,
			"per_peer_total": list(self.per_peer_total),
			"average_per_peer": self.average_per_peer,
			"peer_count": self.peer_count,
			"formatted": self.formatted(),
		}


PeerLike = Union[PeerCounters, Mapping[str, Any]]


def _counters(peer: PeerLike) -> PeerCounters:
	if isinstance(peer, PeerCounters):
		received, sent = peer.bytes_received, peer.bytes_sent
	else:
		received, sent = peer["bytes_received"], peer["bytes_sent"]
	return PeerCounters(
		bytes_received=_check_counter(received, "bytes_received"),
		bytes_sent=_check_counter(sent, "bytes_sent"),
	)


def aggregate(peers: Iterable[PeerLike]) -> TrafficSummary:
	"""Sum received/sent bytes per peer and overall.

	Accepts ``PeerCounters`` or any mapping with ``bytes_received`` and
	``bytes_sent`` keys (e.g. ``sqlite3.Row``).

	Raises:
		ValidationError: If any counter is negative.
	"""
	counters = [_counters(p) for p in peers]
	per_peer = [c.total for c in counters]
	total_received = sum(c.bytes_received for c in counters)
	total_sent = sum(c.bytes_sent for c in counters)
	count = len(counters)
	average = (total_received + total_sent) / count if count > 0 else 0
	return TrafficSummary(
		total_received=total_received,
		total_sent=total_sent,
		per_peer_total=per_peer,
		average_per_peer=average,
	)
