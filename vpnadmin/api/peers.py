#!/usr/bin/env python3
#
# vpnadmin/api/peers.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Peer API routes.

Listing peers polls the telemetry source first, so status and counters are
as fresh as the source allows.
"""

from __future__ import annotations

import logging
import sqlite3

from fastapi import APIRouter, Depends, Response
from starlette.concurrency import run_in_threadpool

from ..db import sqlite as sqlite_db
from ..errors import NotFoundError
from ..models.peers import PeerCreate, PeerPublic, PeerUpdate
from ..security import events
from ..security.events import ClientInfo, Severity
from ..utils.deps import get_client, get_conn, get_telemetry_source
from ..utils.time import utcnow
from ..wireguard.sync import refresh_peers
from ..wireguard.telemetry import PeerTelemetrySource
from .auth import get_current_user, require_admin
from .response import ok_response

_log = logging.getLogger(__name__)

router = APIRouter(tags=["peers"])


def _public(row: sqlite3.Row) -> dict:
	return PeerPublic.from_row(row, utcnow()).model_dump(mode="json")


def _list_public(conn: sqlite3.Connection) -> list[dict]:
	now = utcnow()
	return [PeerPublic.from_row(row, now).model_dump(mode="json") for row in sqlite_db.get_all_peers(conn)]


@router.get("")
async def list_peers(
	conn: sqlite3.Connection = Depends(get_conn),
	source: PeerTelemetrySource = Depends(get_telemetry_source),
	_: sqlite3.Row = Depends(get_current_user),
):
	"""List peers with live status (any authenticated user)."""
	await refresh_peers(conn, source)
	return ok_response(data=await run_in_threadpool(_list_public, conn))


@router.post("", status_code=201)
def create_peer(
	payload: PeerCreate,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(require_admin),
	client: ClientInfo = Depends(get_client),
):
	"""Provision a peer (admin only)."""
	peer_id = sqlite_db.create_peer(conn, **payload.model_dump())
	events.record_event(
		conn,
		events.PEER_CREATED,
		client=client,
		user_id=current_user["id"],
		details={"peer_id": peer_id, "name": payload.name, "public_key": payload.public_key},
	)
	_log.info("PEER_CREATED peer_id=%d name=%s by_admin=%d", peer_id, payload.name, current_user["id"])
	return ok_response(data=_public(sqlite_db.get_peer_by_id(conn, peer_id)))


@router.get("/{peer_id}")
def get_peer(
	peer_id: int,
	conn: sqlite3.Connection = Depends(get_conn),
	_: sqlite3.Row = Depends(get_current_user),
):
	"""Get a single peer from the last stored telemetry."""
	peer = sqlite_db.get_peer_by_id(conn, peer_id)
	if not peer:
		raise NotFoundError(f"Peer {peer_id} not found")
	return ok_response(data=_public(peer))


@router.patch("/{peer_id}")
def update_peer(
	peer_id: int,
	payload: PeerUpdate,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(require_admin),
	client: ClientInfo = Depends(get_client),
):
	"""Update name, address, allowed IPs, endpoint or enabled flag (admin only).

	Omitted fields stay unchanged; an explicit null endpoint clears it.
	"""
	changes = payload.model_dump(exclude_unset=True)
	peer = sqlite_db.update_peer(conn, peer_id, **changes)
	events.record_event(
		conn,
		events.PEER_UPDATED,
		client=client,
		user_id=current_user["id"],
		details={"peer_id": peer_id, "changes": changes},
	)
	_log.info("PEER_UPDATED peer_id=%d by_admin=%d fields=%s", peer_id, current_user["id"], sorted(changes))
	return ok_response(data=_public(peer))


@router.post("/{peer_id}/toggle")
def toggle_peer(
	peer_id: int,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(require_admin),
	client: ClientInfo = Depends(get_client),
):
	"""Flip the enabled flag (admin only)."""
	peer = sqlite_db.toggle_peer(conn, peer_id)
	events.record_event(
		conn,
		events.PEER_UPDATED,
		client=client,
		user_id=current_user["id"],
		details={"peer_id": peer_id, "changes": {"is_enabled": bool(peer["is_enabled"])}},
	)
	_log.info("PEER_TOGGLED peer_id=%d enabled=%s", peer_id, bool(peer["is_enabled"]))
	return ok_response(data=_public(peer))


@router.delete("/{peer_id}", status_code=204)
def delete_peer(
	peer_id: int,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(require_admin),
	client: ClientInfo = Depends(get_client),
):
	"""Revoke a peer (admin only)."""
	peer = sqlite_db.delete_peer(conn, peer_id)
	events.record_event(
		conn,
		events.PEER_DELETED,
		client=client,
		user_id=current_user["id"],
		details={"peer_id": peer_id, "name": peer["name"], "public_key": peer["public_key"]},
		severity=Severity.WARNING,
	)
	_log.info("PEER_DELETED peer_id=%d by_admin=%d", peer_id, current_user["id"])
	return Response(status_code=204)
