#
# tests/test_login.py
#

import threading
from datetime import datetime, timedelta, timezone

from conftest import ADMIN_PASSWORD, USER_PASSWORD

from vpnadmin.db import sqlite as sqlite_db
from vpnadmin.security import events
from vpnadmin.security.events import ClientInfo
from vpnadmin.security.login import LOCK_DURATION, MAX_FAILED_ATTEMPTS, LoginState, authenticate

CLIENT = ClientInfo(ip_address="192.0.2.10", user_agent="pytest")
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _make_user(conn, username="alice", **kwargs):
	return sqlite_db.create_user(conn, username, USER_PASSWORD, **kwargs)


def test_successful_login_issues_session(conn):
	user_id = _make_user(conn)
	result = authenticate(conn, "alice", USER_PASSWORD, client=CLIENT, now=NOW)

	assert result.state is LoginState.AUTHENTICATED
	assert result.session.expires_at == NOW + timedelta(hours=24)
	assert len(result.session.token) >= 43
	assert sqlite_db.get_user_by_session(conn, result.session.token, now=NOW)["id"] == user_id
	assert sqlite_db.count_security_events(conn, events.LOGIN_SUCCESS) == 1

	user = sqlite_db.get_user_by_id(conn, user_id)
	assert user["failed_login_attempts"] == 0
	assert user["last_login_ip"] == "192.0.2.10"


def test_success_resets_failure_counter(conn):
	user_id = _make_user(conn)
	for _ in range(3):
		authenticate(conn, "alice", "wrong", client=CLIENT, now=NOW)
	assert sqlite_db.get_user_by_id(conn, user_id)["failed_login_attempts"] == 3

	assert authenticate(conn, "alice", USER_PASSWORD, client=CLIENT, now=NOW).ok
	assert sqlite_db.get_user_by_id(conn, user_id)["failed_login_attempts"] == 0


def test_username_lookup_is_case_insensitive(conn):
	_make_user(conn)
	assert authenticate(conn, "  Alice ", USER_PASSWORD, client=CLIENT, now=NOW).ok


def test_unknown_user_is_rejected_without_user_id(conn):
	result = authenticate(conn, "nobody", "whatever", client=CLIENT, now=NOW)
	assert result.state is LoginState.REJECTED
	(event,) = sqlite_db.list_security_events(conn, action=events.LOGIN_FAILED)
	assert event["user_id"] is None
	assert event["severity"] == "warning"


def test_five_failures_lock_and_sixth_does_not_increment(conn):
	user_id = _make_user(conn)
	states = [
		authenticate(conn, "alice", "wrong", client=CLIENT, now=NOW).state
		for _ in range(MAX_FAILED_ATTEMPTS)
	]
	assert states == [LoginState.REJECTED] * (MAX_FAILED_ATTEMPTS - 1) + [LoginState.LOCKED]

	user = sqlite_db.get_user_by_id(conn, user_id)
	assert user["failed_login_attempts"] == MAX_FAILED_ATTEMPTS
	assert user["locked_until"] == NOW + LOCK_DURATION
	assert sqlite_db.count_security_events(conn, events.ACCOUNT_LOCKED) == 1

	# Even the right password is refused while locked
	sixth = authenticate(conn, "alice", USER_PASSWORD, client=CLIENT, now=NOW + timedelta(minutes=10))
	assert sixth.state is LoginState.LOCKED
	assert sqlite_db.get_user_by_id(conn, user_id)["failed_login_attempts"] == MAX_FAILED_ATTEMPTS
	assert sqlite_db.count_security_events(conn, events.LOGIN_BLOCKED) == 1


def test_expired_lock_is_cleared(conn):
	user_id = _make_user(conn)
	for _ in range(MAX_FAILED_ATTEMPTS):
		authenticate(conn, "alice", "wrong", client=CLIENT, now=NOW)

	later = NOW + LOCK_DURATION + timedelta(seconds=1)
	result = authenticate(conn, "alice", "wrong", client=CLIENT, now=later)
	assert result.state is LoginState.REJECTED
	user = sqlite_db.get_user_by_id(conn, user_id)
	assert user["failed_login_attempts"] == 1
	assert user["locked_until"] is None

	assert authenticate(conn, "alice", USER_PASSWORD, client=CLIENT, now=later).ok


def test_inactive_account_is_rejected_and_counted(conn):
	user_id = _make_user(conn, status="suspended")
	result = authenticate(conn, "alice", USER_PASSWORD, client=CLIENT, now=NOW)
	assert result.state is LoginState.REJECTED
	assert result.reason == "status_suspended"
	assert sqlite_db.get_user_by_id(conn, user_id)["failed_login_attempts"] == 1


def test_session_invalid_after_expiry_or_deactivation(conn):
	user_id = _make_user(conn)
	token = authenticate(conn, "alice", USER_PASSWORD, client=CLIENT, now=NOW).session.token

	assert sqlite_db.get_user_by_session(conn, token, now=NOW + timedelta(hours=23))
	assert sqlite_db.get_user_by_session(conn, token, now=NOW + timedelta(hours=24)) is None

	sqlite_db.update_user(conn, user_id, status="inactive")
	assert sqlite_db.get_user_by_session(conn, token, now=NOW) is None


def test_session_token_is_stored_hashed(conn):
	_make_user(conn)
	token = authenticate(conn, "alice", USER_PASSWORD, client=CLIENT, now=NOW).session.token
	stored = conn.execute("SELECT token_hash FROM sessions").fetchone()[0]
	assert stored != token
	assert len(stored) == 64


def test_concurrent_failures_for_distinct_users_are_isolated(cfg, conn):
	names = ["bob", "carol", "dave"]
	for name in names:
		_make_user(conn, name)

	def hammer(name):
		c = sqlite_db.connect(cfg.db_path)
		try:
			for _ in range(3):
				authenticate(c, name, "wrong", client=CLIENT, now=NOW)
		finally:
			sqlite_db.close_connection(c)

	threads = [threading.Thread(target=hammer, args=(n,)) for n in names]
	for t in threads:
		t.start()
	for t in threads:
		t.join()

	for name in names:
		assert sqlite_db.get_user_by_username(conn, name)["failed_login_attempts"] == 3
	assert sqlite_db.get_user_by_username(conn, "admin")["failed_login_attempts"] == 0


def test_bootstrap_admin_can_log_in(conn):
	assert authenticate(conn, "admin", ADMIN_PASSWORD, client=CLIENT, now=NOW).ok


def test_concurrent_failures_on_one_account_lock_once(cfg, conn):
	user_id = _make_user(conn)
	for _ in range(MAX_FAILED_ATTEMPTS - 1):
		authenticate(conn, "alice", "wrong", client=CLIENT, now=NOW)

	workers = 8
	barrier = threading.Barrier(workers)
	states = []
	states_lock = threading.Lock()

	def attempt():
		c = sqlite_db.connect(cfg.db_path)
		try:
			barrier.wait()
			state = authenticate(c, "alice", "wrong", client=CLIENT, now=NOW).state
			with states_lock:
				states.append(state)
		finally:
			sqlite_db.close_connection(c)

	threads = [threading.Thread(target=attempt) for _ in range(workers)]
	for t in threads:
		t.start()
	for t in threads:
		t.join()

	assert states == [LoginState.LOCKED] * workers
	user = sqlite_db.get_user_by_id(conn, user_id)
	assert user["failed_login_attempts"] == MAX_FAILED_ATTEMPTS
	assert user["locked_until"] == NOW + LOCK_DURATION
	assert sqlite_db.count_security_events(conn, events.ACCOUNT_LOCKED) == 1
	assert sqlite_db.count_security_events(conn, events.LOGIN_BLOCKED) == workers - 1


def test_success_reset_refuses_a_locked_row(conn):
	user_id = _make_user(conn)
	for _ in range(MAX_FAILED_ATTEMPTS):
		authenticate(conn, "alice", "wrong", client=CLIENT, now=NOW)

	# A correct password that passed the first lock check must not clear the lock
	assert not sqlite_db.record_successful_login(conn, user_id, "192.0.2.10", NOW)
	user = sqlite_db.get_user_by_id(conn, user_id)
	assert user["failed_login_attempts"] == MAX_FAILED_ATTEMPTS
	assert user["locked_until"] == NOW + LOCK_DURATION

	assert sqlite_db.record_successful_login(conn, user_id, "192.0.2.10", NOW + LOCK_DURATION)
	assert sqlite_db.get_user_by_id(conn, user_id)["locked_until"] is None


def test_failure_on_a_locked_row_is_not_counted(conn):
	user_id = _make_user(conn)
	for _ in range(MAX_FAILED_ATTEMPTS):
		authenticate(conn, "alice", "wrong", client=CLIENT, now=NOW)

	failed, locked_until, newly_locked = sqlite_db.record_failed_login(
		conn, user_id, NOW, max_attempts=MAX_FAILED_ATTEMPTS, lock_duration=LOCK_DURATION,
	)
	assert (failed, locked_until, newly_locked) == (MAX_FAILED_ATTEMPTS, NOW + LOCK_DURATION, False)
