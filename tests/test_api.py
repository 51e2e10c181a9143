#
# tests/test_api.py
#

from conftest import ADMIN_PASSWORD, PEER_KEYS, USER_PASSWORD, login

from vpnadmin.db import sqlite as sqlite_db
from vpnadmin.errors import InfrastructureError
from vpnadmin.security import events
from vpnadmin.wireguard.telemetry import PeerTelemetrySource


def _create_user(client, headers, username="alice", role="user", password=USER_PASSWORD):
	resp = client.post(
		"/api/users",
		headers=headers,
		json={"username": username, "password": password, "role": role, "email": f"{username}@example.com"},
	)
	assert resp.status_code == 201, resp.text
	return resp.json()["data"]


def _create_peer(client, headers, idx):
	resp = client.post(
		"/api/peers",
		headers=headers,
		json={
			"public_key": PEER_KEYS[idx],
			"name": f"peer-{idx}",
			"address": f"10.8.0.{idx + 2}/32",
			"allowed_ips": f"10.8.0.{idx + 2}/32",
		},
	)
	assert resp.status_code == 201, resp.text
	return resp.json()["data"]


def _events(app, action):
	conn = sqlite_db.connect(app.state.db_path)
	try:
		return sqlite_db.list_security_events(conn, action=action)
	finally:
		sqlite_db.close_connection(conn)


def test_health_is_public(client):
	resp = client.get("/api/health")
	assert resp.status_code == 200
	body = resp.json()
	assert body["status"] == "ok"
	assert body["telemetry_source"] == "fixture"
	assert {job["name"] for job in body["jobs"]} == {"session-sweep", "rate-limit-sweep"}


def test_security_headers_and_request_id(client):
	resp = client.get("/api/health", headers={"X-Request-ID": "abc-123"})
	assert resp.headers["X-Content-Type-Options"] == "nosniff"
	assert resp.headers["X-Frame-Options"] == "DENY"
	assert resp.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
	assert "camera=()" in resp.headers["Permissions-Policy"]
	assert resp.headers["X-Request-ID"] == "abc-123"


def test_login_returns_token(client):
	resp = client.post("/api/login", json={"username": "admin", "password": ADMIN_PASSWORD})
	assert resp.status_code == 200
	body = resp.json()
	assert body["token_type"] == "Bearer"
	assert body["token"]
	assert body["expires_at"]


def test_bad_password_and_unknown_user_look_the_same(client):
	bad = client.post("/api/login", json={"username": "admin", "password": "nope"})
	unknown = client.post("/api/login", json={"username": "ghost", "password": "nope"})
	assert bad.status_code == unknown.status_code == 401
	assert bad.json() == unknown.json() == {"status": "error", "detail": "Invalid username or password"}


def test_locked_account_looks_like_bad_credentials(app, client, admin_headers):
	user = _create_user(client, admin_headers)
	conn = sqlite_db.connect(app.state.db_path)
	try:
		conn.execute("UPDATE users SET failed_login_attempts = 5, locked_until = '2999-01-01T00:00:00.000000Z' WHERE id = ?", (user["id"],))
		conn.commit()
	finally:
		sqlite_db.close_connection(conn)

	locked = client.post("/api/login", json={"username": "alice", "password": USER_PASSWORD})
	bad = client.post("/api/login", json={"username": "admin", "password": "nope"})
	assert locked.status_code == bad.status_code == 401
	assert locked.json() == bad.json() == {"status": "error", "detail": "Invalid username or password"}
	assert locked.headers["WWW-Authenticate"] == bad.headers["WWW-Authenticate"]
	(event,) = _events(app, events.LOGIN_BLOCKED)
	assert event["user_id"] == user["id"]


def test_login_route_is_rate_limited(client):
	codes = [
		client.post("/api/login", json={"username": "ghost", "password": "nope"}).status_code
		for _ in range(6)
	]
	assert codes[:5] == [401] * 5
	assert codes[5] == 429


def test_me_and_logout(client, admin_headers):
	me = client.get("/api/me", headers=admin_headers)
	assert me.status_code == 200
	assert me.json()["data"]["role"] == "admin"

	assert client.post("/api/logout", headers=admin_headers).status_code == 200
	assert client.get("/api/me", headers=admin_headers).status_code == 401


def test_missing_token_is_recorded(app, client):
	resp = client.get("/api/peers")
	assert resp.status_code == 401
	assert resp.json()["detail"] == "Not authenticated"
	(event,) = _events(app, events.UNAUTHORIZED_ACCESS)
	assert event["severity"] == "warning"


def test_non_admin_gets_403_and_event(app, client, admin_headers):
	_create_user(client, admin_headers)
	user_headers = login(client, "alice", USER_PASSWORD)

	assert client.get("/api/users", headers=user_headers).status_code == 403
	assert client.delete("/api/users/1", headers=user_headers).status_code == 403
	assert len(_events(app, events.INSUFFICIENT_PERMISSIONS)) == 2

	# Own profile is fine
	me = client.get("/api/me", headers=user_headers).json()["data"]
	assert client.get(f"/api/users/{me['id']}", headers=user_headers).status_code == 200


def test_user_crud(client, admin_headers):
	user = _create_user(client, admin_headers, role="moderator")
	assert user["username"] == "alice"
	assert user["role"] == "moderator"

	listed = client.get("/api/users", headers=admin_headers).json()["data"]
	assert {u["username"] for u in listed} == {"admin", "alice"}

	patched = client.patch(f"/api/users/{user['id']}", headers=admin_headers, json={"status": "suspended"})
	assert patched.status_code == 200
	assert patched.json()["data"]["status"] == "suspended"

	assert client.delete(f"/api/users/{user['id']}", headers=admin_headers).status_code == 204
	assert client.get(f"/api/users/{user['id']}", headers=admin_headers).status_code == 404


def test_duplicate_username_is_409(client, admin_headers):
	_create_user(client, admin_headers)
	resp = client.post("/api/users", headers=admin_headers, json={"username": "alice", "password": USER_PASSWORD})
	assert resp.status_code == 409


def test_weak_password_is_422(client, admin_headers):
	for password in ("password123", "alllowercase", "short1A"):
		resp = client.post("/api/users", headers=admin_headers, json={"username": "weak", "password": password})
		assert resp.status_code == 422, password


def test_last_admin_cannot_be_deleted_or_demoted(app, client, admin_headers):
	other = _create_user(client, admin_headers, username="boss", role="admin")
	boss_headers = login(client, "boss", USER_PASSWORD)
	admin_id = client.get("/api/me", headers=admin_headers).json()["data"]["id"]

	# Two admins: deleting one is fine
	assert client.delete(f"/api/users/{admin_id}", headers=boss_headers).status_code == 204

	resp = client.patch(f"/api/users/{other['id']}", headers=boss_headers, json={"role": "user"})
	assert resp.status_code == 409
	assert "last active admin" in resp.json()["detail"]


def test_cannot_delete_yourself(client, admin_headers):
	admin_id = client.get("/api/me", headers=admin_headers).json()["data"]["id"]
	assert client.delete(f"/api/users/{admin_id}", headers=admin_headers).status_code == 409


def test_change_password_revokes_sessions(client, admin_headers):
	user = _create_user(client, admin_headers)
	user_headers = login(client, "alice", USER_PASSWORD)
	new_password = "N3w-Passw0rd!"

	wrong = client.post(
		f"/api/users/{user['id']}/change-password",
		headers=user_headers,
		json={"current_password": "wrong", "new_password": new_password},
	)
	assert wrong.status_code == 422

	ok = client.post(
		f"/api/users/{user['id']}/change-password",
		headers=user_headers,
		json={"current_password": USER_PASSWORD, "new_password": new_password},
	)
	assert ok.status_code == 200
	assert client.get("/api/me", headers=user_headers).status_code == 401
	login(client, "alice", new_password)


def test_unlock_user(app, client, admin_headers):
	user = _create_user(client, admin_headers)
	conn = sqlite_db.connect(app.state.db_path)
	try:
		conn.execute("UPDATE users SET failed_login_attempts = 5, locked_until = '2999-01-01T00:00:00.000000Z' WHERE id = ?", (user["id"],))
		conn.commit()
	finally:
		sqlite_db.close_connection(conn)

	resp = client.post(f"/api/users/{user['id']}/unlock", headers=admin_headers)
	assert resp.status_code == 200
	assert resp.json()["data"]["failed_login_attempts"] == 0
	assert resp.json()["data"]["locked_until"] is None


def test_peers_list_derives_status_from_telemetry(client, admin_headers):
	for idx in range(3):
		_create_peer(client, admin_headers, idx)

	resp = client.get("/api/peers", headers=admin_headers)
	assert resp.status_code == 200
	peers = {p["public_key"]: p for p in resp.json()["data"]}
	assert peers[PEER_KEYS[0]]["status"] == "connected"
	assert peers[PEER_KEYS[0]]["endpoint"] == "203.0.113.5:51820"
	assert peers[PEER_KEYS[0]]["formatted"]["bytes_received"] == "2.00 KB"
	assert peers[PEER_KEYS[1]]["status"] == "idle"
	assert peers[PEER_KEYS[1]]["last_seen"] == "10m ago"
	assert peers[PEER_KEYS[2]]["status"] == "disconnected"
	assert peers[PEER_KEYS[2]]["last_seen"] == "Never"


def test_peer_admin_operations(client, admin_headers):
	peer = _create_peer(client, admin_headers, 0)

	dup = client.post("/api/peers", headers=admin_headers, json={
		"public_key": PEER_KEYS[0], "name": "x", "address": "10.8.0.9/32", "allowed_ips": "10.8.0.9/32",
	})
	assert dup.status_code == 409

	patched = client.patch(f"/api/peers/{peer['id']}", headers=admin_headers, json={"name": "phone"})
	assert patched.json()["data"]["name"] == "phone"

	toggled = client.post(f"/api/peers/{peer['id']}/toggle", headers=admin_headers)
	assert toggled.json()["data"]["is_enabled"] is False

	assert client.delete(f"/api/peers/{peer['id']}", headers=admin_headers).status_code == 204
	assert client.get(f"/api/peers/{peer['id']}", headers=admin_headers).status_code == 404


def test_peer_patch_clears_endpoint_and_rejects_blank_name(client, admin_headers):
	peer = _create_peer(client, admin_headers, 1)
	url = f"/api/peers/{peer['id']}"

	set_ep = client.patch(url, headers=admin_headers, json={"endpoint": "198.51.100.7:51820"})
	assert set_ep.json()["data"]["endpoint"] == "198.51.100.7:51820"

	cleared = client.patch(url, headers=admin_headers, json={"endpoint": None})
	assert cleared.status_code == 200
	assert cleared.json()["data"]["endpoint"] is None
	assert cleared.json()["data"]["name"] == "peer-1"

	assert client.patch(url, headers=admin_headers, json={"name": "   "}).status_code == 422
	assert client.patch(url, headers=admin_headers, json={"name": None}).status_code == 422


def test_invalid_peer_key_is_422(client, admin_headers):
	resp = client.post("/api/peers", headers=admin_headers, json={
		"public_key": "not-a-key", "name": "x", "address": "10.8.0.9/32", "allowed_ips": "10.8.0.9/32",
	})
	assert resp.status_code == 422


def test_stats(client, admin_headers):
	for idx in range(3):
		_create_peer(client, admin_headers, idx)

	data = client.get("/api/stats", headers=admin_headers).json()["data"]
	assert data["peers"] == {"total": 3, "enabled": 3, "connected": 1, "idle": 1, "disconnected": 1}
	traffic = data["traffic"]
	assert traffic["total_received"] == 2048 + 1024 ** 2
	assert traffic["total_sent"] == 1024
	assert traffic["formatted"]["total_sent"] == "1.00 KB"


def test_stats_without_peers(client, admin_headers):
	data = client.get("/api/stats", headers=admin_headers).json()["data"]
	assert data["traffic"]["average_per_peer"] == 0


class _BrokenSource(PeerTelemetrySource):
	name = "broken"

	async def fetch(self):
		raise InfrastructureError("wg show wg0 dump failed (exit 1)")


def test_telemetry_failure_is_500_and_critical_event(app, client, admin_headers):
	app.state.telemetry_source = _BrokenSource()
	resp = client.get("/api/peers", headers=admin_headers)
	assert resp.status_code == 500
	assert resp.json() == {"status": "error", "detail": "Internal server error"}
	(event,) = _events(app, events.INFRASTRUCTURE_ERROR)
	assert event["severity"] == "critical"


def test_security_events_endpoint(client, admin_headers):
	client.post("/api/login", json={"username": "admin", "password": "nope"})
	resp = client.get("/api/security-events", headers=admin_headers, params={"severity": "warning"})
	assert resp.status_code == 200
	actions = [e["action"] for e in resp.json()["data"]]
	assert actions == ["login_failed"]
	assert resp.json()["data"][0]["details"]["reason"] == "bad_password"
