#!/usr/bin/env python3
#
# vpnadmin/api/stats.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Dashboard statistics: peer status counts, traffic totals, host metrics."""

from __future__ import annotations

import sqlite3

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from ..db import sqlite as sqlite_db
from ..utils.config import Config
from ..utils.deps import get_config, get_conn, get_telemetry_source
from ..utils.system import collect_system_metrics
from ..utils.time import from_epoch, utcnow
from ..wireguard.status import count_by_status, derive_status
from ..wireguard.sync import refresh_peers
from ..wireguard.telemetry import PeerTelemetrySource
from ..wireguard.traffic import aggregate
from .auth import get_current_user
from .response import ok_response

router = APIRouter(tags=["stats"])


def _peer_stats(conn: sqlite3.Connection) -> dict:
	peers = sqlite_db.get_all_peers(conn)
	now = utcnow()
	return {
		"peers": {
			"total": len(peers),
			"enabled": sum(1 for p in peers if p["is_enabled"]),
			**count_by_status(derive_status(from_epoch(p["last_handshake_at"]), now) for p in peers),
		},
		"traffic": aggregate(peers).as_dict(),
	}


@router.get("")
async def get_stats(
	conn: sqlite3.Connection = Depends(get_conn),
	source: PeerTelemetrySource = Depends(get_telemetry_source),
	_: sqlite3.Row = Depends(get_current_user),
):
	await refresh_peers(conn, source)
	return ok_response(data=await run_in_threadpool(_peer_stats, conn))


@router.get("/system")
def get_system_stats(
	cfg: Config = Depends(get_config),
	_: sqlite3.Row = Depends(get_current_user),
):
	"""Host uptime, load, memory, disk and WireGuard interface counters."""
	interface = None if cfg.wg_interface == "all" else cfg.wg_interface
	metrics = collect_system_metrics(interface=interface, disk_path=cfg.data_dir)
	return ok_response(data=metrics.as_dict())
