#!/usr/bin/env python3
#
# vpnadmin/db/sqlite_peers.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Peer CRUD and telemetry counter persistence."""

from __future__ import annotations

import logging
import sqlite3
from typing import Iterable, Optional

from ..errors import ConstraintError, NotFoundError
from ..utils.time import utcnow
from .sqlite_runtime import transaction

_log = logging.getLogger(__name__)

_UPDATABLE_COLUMNS = ("name", "address", "allowed_ips", "endpoint", "is_enabled")
_NULLABLE_COLUMNS = frozenset({"endpoint"})


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_all_peers(conn: sqlite3.Connection) -> list[sqlite3.Row]:
	"""Get all peers ordered by name."""
	cur = conn.execute("SELECT * FROM peers ORDER BY name, id")
	return cur.fetchall()


def get_peer_by_id(conn: sqlite3.Connection, peer_id: int) -> Optional[sqlite3.Row]:
	"""Get a peer by ID."""
	cur = conn.execute("SELECT * FROM peers WHERE id = ?", (peer_id,))
	return cur.fetchone()


def get_peer_by_public_key(conn: sqlite3.Connection, public_key: str) -> Optional[sqlite3.Row]:
	"""Get a peer by public key."""
	cur = conn.execute("SELECT * FROM peers WHERE public_key = ?", (public_key,))
	return cur.fetchone()


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def create_peer(
	conn: sqlite3.Connection,
	*,
	public_key: str,
	name: str,
	address: str,
	allowed_ips: str,
	endpoint: Optional[str] = None,
	is_enabled: bool = True,
) -> int:
	"""Provision a peer and return its ID.

	Raises:
		ConstraintError: If the public key or address is already assigned.
	"""
	now = utcnow()
	try:
		with transaction(conn):
			cur = conn.execute(
				"""
				INSERT INTO peers (public_key, name, address, allowed_ips, endpoint, is_enabled, created_at, updated_at)
				VALUES (?, ?, ?, ?, ?, ?, ?, ?)
				""",
				(public_key, name, address, allowed_ips, endpoint, int(is_enabled), now, now),
			)
			return cur.lastrowid
	except sqlite3.IntegrityError as exc:
		raise ConstraintError("A peer with this public key or address already exists") from exc


def update_peer(conn: sqlite3.Connection, peer_id: int, **fields) -> sqlite3.Row:
	"""Update the given columns of a peer and return the new row.

	Only keys in ``_UPDATABLE_COLUMNS`` are accepted. A None endpoint clears
	the stored one; None for any other column leaves it unchanged.
	"""
	unknown = set(fields) - set(_UPDATABLE_COLUMNS)
	if unknown:
		raise ValueError(f"Cannot update peer columns: {sorted(unknown)}")

	updates = []
	params: list = []
	for column in _UPDATABLE_COLUMNS:
		if column not in fields:
			continue
		value = fields[column]
		if value is None and column not in _NULLABLE_COLUMNS:
			continue
		updates.append(f"{column} = ?")
		params.append(int(value) if column == "is_enabled" else value)

	try:
		with transaction(conn):
			if updates:
				updates.append("updated_at = ?")
				params.extend([utcnow(), peer_id])
				cur = conn.execute(f"UPDATE peers SET {', '.join(updates)} WHERE id = ?", params)
				if cur.rowcount == 0:
					raise NotFoundError(f"Peer {peer_id} not found")
	except sqlite3.IntegrityError as exc:
		raise ConstraintError("A peer with this address already exists") from exc

	peer = get_peer_by_id(conn, peer_id)
	if not peer:
		raise NotFoundError(f"Peer {peer_id} not found")
	return peer


def toggle_peer(conn: sqlite3.Connection, peer_id: int) -> sqlite3.Row:
	"""Flip the enabled flag in a single conditional UPDATE."""
	with transaction(conn):
		cur = conn.execute(
			"UPDATE peers SET is_enabled = 1 - is_enabled, updated_at = ? WHERE id = ?",
			(utcnow(), peer_id),
		)
		if cur.rowcount == 0:
			raise NotFoundError(f"Peer {peer_id} not found")
	return get_peer_by_id(conn, peer_id)


def delete_peer(conn: sqlite3.Connection, peer_id: int) -> sqlite3.Row:
	"""Revoke (delete) a peer and return the deleted row."""
	with transaction(conn):
		peer = get_peer_by_id(conn, peer_id)
		if not peer:
			raise NotFoundError(f"Peer {peer_id} not found")
		conn.execute("DELETE FROM peers WHERE id = ?", (peer_id,))
	return peer


def update_peers_telemetry_batch(
	conn: sqlite3.Connection,
	updates: Iterable[tuple[int, int, Optional[int], Optional[str], str]],
) -> int:
	"""Persist polled counters for many peers.

	*updates* holds ``(bytes_received, bytes_sent, last_handshake_at,
	endpoint, public_key)`` tuples. Unknown public keys are ignored. A None
	endpoint keeps the stored one.

	Returns:
		Number of peers updated.
	"""
	rows = list(updates)
	if not rows:
		return 0
	with transaction(conn):
		cur = conn.executemany(
			"""
			UPDATE peers
			SET bytes_received = ?, bytes_sent = ?, last_handshake_at = ?,
				endpoint = COALESCE(?, endpoint)
			WHERE public_key = ?
			""",
			rows,
		)
		return cur.rowcount
