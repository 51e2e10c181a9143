#!/usr/bin/env python3
#
# vpnadmin/utils/deps.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""FastAPI dependency helpers."""

from __future__ import annotations

from collections.abc import Generator

from fastapi import Request

from ..db import sqlite as sqlite_db
from ..security.events import ClientInfo
from ..wireguard.telemetry import PeerTelemetrySource
from .config import Config
from .network import get_client_info


def get_conn(request: Request) -> Generator:
	"""Yield a per-request SQLite connection."""
	conn = sqlite_db.connect(request.app.state.db_path)
	try:
		yield conn
	finally:
		sqlite_db.close_connection(conn)


def get_config(request: Request) -> Config:
	"""Get the application configuration from app state."""
	return request.app.state.cfg


def get_telemetry_source(request: Request) -> PeerTelemetrySource:
	"""Telemetry source selected at startup."""
	return request.app.state.telemetry_source


def get_client(request: Request) -> ClientInfo:
	return get_client_info(request)
