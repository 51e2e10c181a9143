#
# tests/test_rate_limit.py
#

import asyncio
import json
import threading
import time

import pytest
from fastapi.testclient import TestClient

from vpnadmin import create_app
from vpnadmin.db import sqlite as sqlite_db
from vpnadmin.security import events
from vpnadmin.tasks.maintenance import sweep_rate_limits
from vpnadmin.utils.rate_limit import MovingWindowRateLimitStore

TOO_MANY = {"status": "error", "detail": "Too many requests. Please try again later."}


def test_moving_window():
	store = MovingWindowRateLimitStore(limit=2, window_seconds=1)
	assert store.hit("1.2.3.4")
	assert store.hit("1.2.3.4")
	assert not store.hit("1.2.3.4")
	assert store.remaining("1.2.3.4") == 0
	# Other clients have their own budget
	assert store.hit("5.6.7.8")
	assert store.remaining("5.6.7.8") == 1

	time.sleep(1.1)
	assert store.hit("1.2.3.4")


def test_sweep_drops_idle_clients():
	store = MovingWindowRateLimitStore(limit=5, window_seconds=1)
	store.hit("a")
	time.sleep(1.1)
	store.hit("b")
	assert store.sweep() == 1
	assert store.tracked_clients == 1
	assert store.remaining("a") == 5
	assert store.remaining("b") == 4


def test_sweep_job_uses_store():
	store = MovingWindowRateLimitStore(limit=5, window_seconds=1)
	store.hit("a")
	time.sleep(1.1)
	assert asyncio.run(sweep_rate_limits(store)) == 1
	assert store.tracked_clients == 0


def test_invalid_configuration():
	with pytest.raises(ValueError):
		MovingWindowRateLimitStore(limit=0)
	with pytest.raises(ValueError):
		MovingWindowRateLimitStore(window_seconds=0)


def test_concurrent_hits_never_exceed_limit():
	store = MovingWindowRateLimitStore(limit=50, window_seconds=60)
	assert store.hit("shared")
	allowed = []
	lock = threading.Lock()

	def worker():
		for _ in range(20):
			ok = store.hit("shared")
			with lock:
				allowed.append(ok)

	threads = [threading.Thread(target=worker) for _ in range(8)]
	for t in threads:
		t.start()
	for t in threads:
		t.join()
	assert sum(allowed) == 49


def test_injected_store_is_used(cfg, telemetry):
	store = MovingWindowRateLimitStore(limit=3, window_seconds=60)
	app = create_app(cfg, telemetry_source=telemetry, rate_limit_store=store)
	assert app.state.rate_limit_store is store
	assert app.state.telemetry_source is telemetry


def test_middleware_returns_429_and_records_event(cfg, telemetry):
	store = MovingWindowRateLimitStore(limit=3, window_seconds=60)
	app = create_app(cfg, telemetry_source=telemetry, rate_limit_store=store)
	with TestClient(app) as client:
		codes = [client.get("/api/me").status_code for _ in range(4)]
		assert codes == [401, 401, 401, 429]
		assert client.get("/api/me").json() == TOO_MANY
		# Health checks are exempt
		assert client.get("/api/health").status_code == 200
	assert store.tracked_clients == 1

	conn = sqlite_db.connect(cfg.db_path)
	try:
		assert sqlite_db.count_security_events(conn, events.RATE_LIMIT_EXCEEDED) == 2
	finally:
		sqlite_db.close_connection(conn)


def test_login_limit_uses_the_same_error_body(app, client):
	for _ in range(5):
		client.post("/api/login", json={"username": "ghost", "password": "nope"})
	resp = client.post("/api/login", json={"username": "ghost", "password": "nope"})
	assert resp.status_code == 429
	assert resp.json() == TOO_MANY

	conn = sqlite_db.connect(app.state.db_path)
	try:
		(event,) = sqlite_db.list_security_events(conn, action=events.RATE_LIMIT_EXCEEDED)
	finally:
		sqlite_db.close_connection(conn)
	assert event["severity"] == "warning"
	assert json.loads(event["details"])["scope"].startswith("route:")
