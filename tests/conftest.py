#
# tests/conftest.py
#

from __future__ import annotations

import time

import pytest

from vpnadmin.db import sqlite as sqlite_db
from vpnadmin.utils import config as config_mod
from vpnadmin.utils import crypto
from vpnadmin.utils.rate_limit import limiter
from vpnadmin.wireguard.telemetry import FixtureTelemetrySource, PeerTelemetry

ADMIN_PASSWORD = "Adm1n-Passw0rd!"
USER_PASSWORD = "Us3r-Passw0rd!"

PEER_KEYS = [
	"A" * 43 + "=",
	"B" * 43 + "=",
	"C" * 43 + "=",
]


@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch):
	"""PBKDF2 at production strength makes every login take a second."""
	cheap = f"pbkdf2:sha256:1000${'00' * 16}${'00' * 32}"
	monkeypatch.setattr(crypto, "PBKDF2_ITERATIONS", 1000)
	monkeypatch.setattr("vpnadmin.security.login.DUMMY_PASSWORD_HASH", cheap)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
	monkeypatch.setenv("VPNADMIN_DATA_DIR", str(tmp_path / "data"))
	monkeypatch.setenv("VPNADMIN_SECRET_KEY", "test-secret")
	monkeypatch.setenv("VPNADMIN_TELEMETRY_SOURCE", "fixture")
	monkeypatch.setenv("VPNADMIN_ADMIN_PASSWORD", ADMIN_PASSWORD)
	for name in ("VPNADMIN_TELEMETRY_FIXTURE", "VPNADMIN_WG_INTERFACE", "VPNADMIN_RATE_LIMIT", "VPNADMIN_RATE_LIMIT_STORAGE", "LOG_LEVEL"):
		monkeypatch.delenv(name, raising=False)
	config_mod.reset_config()
	limiter.reset()
	yield
	config_mod.reset_config()
	sqlite_db.close_all_connections()


@pytest.fixture
def cfg():
	return config_mod.load_config()


@pytest.fixture
def conn(cfg):
	c = sqlite_db.connect(cfg.db_path)
	sqlite_db.init_schema(c)
	sqlite_db.ensure_default_admin(c, ADMIN_PASSWORD)
	yield c
	sqlite_db.close_connection(c)


@pytest.fixture
def telemetry():
	now = int(time.time())
	return FixtureTelemetrySource([
		PeerTelemetry(public_key=PEER_KEYS[0], endpoint="203.0.113.5:51820", latest_handshake=now - 60,
			transfer_rx=2048, transfer_tx=1024),
		PeerTelemetry(public_key=PEER_KEYS[1], latest_handshake=now - 600, transfer_rx=1024 ** 2, transfer_tx=0),
		PeerTelemetry(public_key=PEER_KEYS[2], latest_handshake=0, transfer_rx=0, transfer_tx=0),
	])


@pytest.fixture
def app(cfg, telemetry):
	from vpnadmin import create_app
	return create_app(cfg, telemetry_source=telemetry)


@pytest.fixture
def client(app):
	from fastapi.testclient import TestClient
	with TestClient(app) as c:
		yield c


def login(client, username="admin", password=ADMIN_PASSWORD) -> dict:
	resp = client.post("/api/login", json={"username": username, "password": password})
	assert resp.status_code == 200, resp.text
	return {"Authorization": f"Bearer {resp.json()['token']}"}


@pytest.fixture
def admin_headers(client):
	return login(client)

