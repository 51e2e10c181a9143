#!/usr/bin/env python3
#
# vpnadmin/wireguard/sync.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Copy polled telemetry onto stored peers."""

from __future__ import annotations

import logging
import sqlite3
from typing import Iterable

from starlette.concurrency import run_in_threadpool

from ..db.sqlite_peers import update_peers_telemetry_batch
from ..errors import ValidationError
from .telemetry import PeerTelemetry, PeerTelemetrySource

_log = logging.getLogger(__name__)


def apply_telemetry(conn: sqlite3.Connection, samples: Iterable[PeerTelemetry]) -> int:
	"""Store counters and handshakes of known peers; returns the number updated.

	Raises:
		ValidationError: If a sample carries a negative counter.
	"""
	rows = []
	for s in samples:
		if s.transfer_rx < 0 or s.transfer_tx < 0:
			raise ValidationError(
				f"Negative byte counter for peer {s.public_key[:8]}...",
				details={"transfer_rx": s.transfer_rx, "transfer_tx": s.transfer_tx},
			)
		rows.append((s.transfer_rx, s.transfer_tx, s.latest_handshake or None, s.endpoint, s.public_key))
	updated = update_peers_telemetry_batch(conn, rows)
	_log.debug("TELEMETRY_APPLIED samples=%d updated=%d", len(rows), updated)
	return updated


async def refresh_peers(conn: sqlite3.Connection, source: PeerTelemetrySource) -> int:
	"""Poll *source* once and persist the result from the threadpool."""
	samples = await source.fetch()
	return await run_in_threadpool(apply_telemetry, conn, samples)
