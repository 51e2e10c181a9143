#!/usr/bin/env python3
#
# vpnadmin/db/sqlite_runtime.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""SQLite runtime helpers: adapters, connections, and transactions."""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from ..errors import InfrastructureError

_log = logging.getLogger(__name__)


def _adapt_datetime(value: datetime) -> str:
	if value.tzinfo is None:
		raise ValueError("Naive datetime not allowed in SQLite")
	# Fixed precision keeps stored values lexicographically ordered for SQL comparisons
	return value.astimezone(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


def _convert_datetime(value: bytes) -> datetime:
	s = value.decode("utf-8")
	if s.endswith("Z"):
		s = s[:-1] + "+00:00"
	try:
		dt = datetime.fromisoformat(s)
		if dt.tzinfo is None:
			dt = dt.replace(tzinfo=timezone.utc)
		return dt.astimezone(timezone.utc)
	except ValueError:
		_log.error(
			"Corrupt timestamp in database: %r - returning epoch",
			value.decode("utf-8", errors="replace"),
		)
		return datetime(1970, 1, 1, tzinfo=timezone.utc)


# NOTE: sqlite3 adapter/converter registration is process-global.
sqlite3.register_adapter(datetime, _adapt_datetime)
sqlite3.register_converter("timestamp", _convert_datetime)


_OPEN_CONNECTIONS: set[sqlite3.Connection] = set()
_CONNECTIONS_LOCK = threading.Lock()

_WAL_RETRIES = 5


def connect(db_path: Path) -> sqlite3.Connection:
	"""Open a SQLite connection configured for this application.

	Raises:
		InfrastructureError: If the database cannot be opened.
	"""
	try:
		db_path.parent.mkdir(parents=True, exist_ok=True)
		conn = sqlite3.connect(
			str(db_path),
			detect_types=sqlite3.PARSE_DECLTYPES,
			check_same_thread=False,
			timeout=30.0,
		)
	except (OSError, sqlite3.Error) as exc:
		raise InfrastructureError(f"Cannot open database {db_path}: {exc}") from exc

	conn.row_factory = sqlite3.Row
	try:
		for attempt in range(_WAL_RETRIES):
			try:
				mode = conn.execute("PRAGMA journal_mode").fetchone()[0].upper()
				if mode != "WAL":
					conn.execute("PRAGMA journal_mode=WAL")
				break
			except sqlite3.OperationalError as e:
				if "locked" in str(e).lower() and attempt < _WAL_RETRIES - 1:
					wait = 0.1 * (2 ** attempt)
					_log.debug("Database locked during WAL activation, retrying in %.1fs", wait)
					time.sleep(wait)
				else:
					raise
		conn.execute("PRAGMA foreign_keys=ON")
	except sqlite3.Error as exc:
		conn.close()
		raise InfrastructureError(f"Cannot configure database {db_path}: {exc}") from exc

	with _CONNECTIONS_LOCK:
		_OPEN_CONNECTIONS.add(conn)
	return conn


def close_connection(conn: sqlite3.Connection) -> None:
	"""Close and untrack a SQLite connection."""
	with _CONNECTIONS_LOCK:
		_OPEN_CONNECTIONS.discard(conn)
	conn.close()


def close_all_connections() -> int:
	"""Close all tracked connections for graceful shutdown."""
	with _CONNECTIONS_LOCK:
		connections = list(_OPEN_CONNECTIONS)
		_OPEN_CONNECTIONS.clear()

	closed = 0
	for conn in connections:
		try:
			conn.close()
			closed += 1
		except sqlite3.Error as e:
			_log.warning("Failed to close SQLite connection: %s", e)
	return closed


@contextmanager
def transaction(conn: sqlite3.Connection, *, immediate: bool = False):
	"""Transaction context manager that commits or rolls back on error.

	If already inside a transaction this is a no-op and the outer
	transaction controls commit/rollback. ``immediate=True`` takes the
	write lock up front, which serialises read-modify-write sequences.
	"""
	started_tx = False
	if not conn.in_transaction:
		conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
		started_tx = True
	try:
		yield
		if started_tx:
			conn.commit()
	except Exception:
		if started_tx and conn.in_transaction:
			conn.rollback()
		raise
