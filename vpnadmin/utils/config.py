#!/usr/bin/env python3
#
# vpnadmin/utils/config.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Configuration loading and app-level defaults."""

from __future__ import annotations

import logging
import os
import re
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

_log = logging.getLogger(__name__)


class ConfigValidationError(Exception):
	"""Raised when critical configuration is missing or invalid."""


TELEMETRY_SOURCES = ("wg", "fixture")

# "all" is accepted by `wg show` as well as a concrete interface name
_IFACE_NAME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9_-]{0,14}$")


@dataclass(frozen=True)
class Config:
	"""Resolved runtime configuration derived from env and defaults."""
	base_dir: Path
	data_dir: Path
	db_path: Path
	log_level: str = "INFO"
	secret_key: str = ""
	telemetry_source: str = "wg"
	telemetry_fixture: Optional[Path] = None
	wg_interface: str = "wg0"
	session_hours: int = 24
	rate_limit: int = 200
	rate_window_seconds: int = 900
	rate_limit_storage: str = "memory://"
	admin_password: Optional[str] = None
	host: str = "0.0.0.0"
	port: int = 8000


def _parse_value(raw: str) -> str:
	"""Extract value, respecting quotes and stripping inline comments."""
	raw = raw.strip()
	if raw and raw[0] in ('"', "'"):
		quote = raw[0]
		end = raw.find(quote, 1)
		if end != -1:
			return raw[1:end]
	if " #" in raw:
		raw = raw.split(" #", 1)[0]
	return raw.strip()


def load_dotenv(dotenv_path: Path | None = None) -> None:
	"""Load simple KEY=VALUE pairs from settings.env.

	Ignores blank lines and comments, accepts `export KEY=VALUE`, and never
	overrides variables that are already set in the environment.
	"""
	project_root = Path(__file__).resolve().parents[2]
	dotenv_path = dotenv_path or (project_root / "settings.env")
	if not dotenv_path.exists():
		return
	for raw_line in dotenv_path.read_text(encoding="utf-8").splitlines():
		line = raw_line.strip()
		if not line or line.startswith("#") or "=" not in line:
			continue
		key, value = line.split("=", 1)
		key = key.strip()
		if key.startswith("export "):
			key = key[7:].strip()
		if not key:
			continue
		os.environ.setdefault(key, _parse_value(value))


def _int_env(name: str, default: int, *, minimum: int = 1) -> int:
	raw = os.getenv(name, "").strip()
	if not raw:
		return default
	try:
		value = int(raw)
	except ValueError as exc:
		raise ConfigValidationError(f"{name} must be an integer, got {raw!r}") from exc
	if value < minimum:
		raise ConfigValidationError(f"{name} must be >= {minimum}, got {value}")
	return value


def load_config() -> Config:
	"""Load configuration from environment variables (optionally via settings.env)."""
	load_dotenv()
	project_root = Path(__file__).resolve().parents[2]

	data_dir = Path(os.getenv("VPNADMIN_DATA_DIR", str(project_root / "data"))).resolve()
	db_path = (data_dir / "vpnadmin.db").resolve()
	try:
		if data_dir.exists() and not data_dir.is_dir():
			raise ConfigValidationError(f"Path exists but is not a directory: {data_dir}")
		data_dir.mkdir(parents=True, exist_ok=True)
	except OSError as exc:
		raise ConfigValidationError(f"Cannot create data directory: {exc}") from exc

	allowed_levels = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
	log_level = os.getenv("LOG_LEVEL", "INFO").upper()
	if log_level not in allowed_levels:
		log_level = "INFO"

	secret_key = os.getenv("VPNADMIN_SECRET_KEY", "")
	if not secret_key:
		if "pytest" not in sys.modules and "PYTEST_CURRENT_TEST" not in os.environ:
			raise ConfigValidationError(
				"VPNADMIN_SECRET_KEY is not set. "
				"Refusing to start without a secret key. "
				"Generate one with: python -c 'import secrets; print(secrets.token_urlsafe(32))'"
			)
		secret_key = "test-only-secret-do-not-use-in-production"
		_log.debug("Using test-only secret key")

	telemetry_source = os.getenv("VPNADMIN_TELEMETRY_SOURCE", "wg").strip().lower()
	if telemetry_source not in TELEMETRY_SOURCES:
		raise ConfigValidationError(
			f"VPNADMIN_TELEMETRY_SOURCE must be one of {TELEMETRY_SOURCES}, got {telemetry_source!r}"
		)
	fixture_raw = os.getenv("VPNADMIN_TELEMETRY_FIXTURE", "").strip()
	telemetry_fixture = Path(fixture_raw).resolve() if fixture_raw else None
	if telemetry_fixture is not None and not telemetry_fixture.is_file():
		raise ConfigValidationError(f"Telemetry fixture not found: {telemetry_fixture}")

	wg_interface = os.getenv("VPNADMIN_WG_INTERFACE", "wg0").strip()
	if wg_interface != "all" and not _IFACE_NAME_RE.fullmatch(wg_interface):
		raise ConfigValidationError(f"Invalid WireGuard interface name: {wg_interface!r}")

	return Config(
		base_dir=project_root,
		data_dir=data_dir,
		db_path=db_path,
		log_level=log_level,
		secret_key=secret_key,
		telemetry_source=telemetry_source,
		telemetry_fixture=telemetry_fixture,
		wg_interface=wg_interface,
		session_hours=_int_env("VPNADMIN_SESSION_HOURS", 24),
		rate_limit=_int_env("VPNADMIN_RATE_LIMIT", 200),
		rate_window_seconds=_int_env("VPNADMIN_RATE_WINDOW_SECONDS", 900),
		rate_limit_storage=os.getenv("VPNADMIN_RATE_LIMIT_STORAGE", "memory://").strip() or "memory://",
		admin_password=os.getenv("VPNADMIN_ADMIN_PASSWORD") or None,
		host=os.getenv("VPNADMIN_HOST", "0.0.0.0"),
		port=_int_env("VPNADMIN_PORT", 8000),
	)


# Global config singleton with thread-safe lazy initialization
_config: Config | None = None
_config_lock = threading.Lock()


def get_config() -> Config:
	"""Get the global config singleton (thread-safe)."""
	global _config
	if _config is None:
		with _config_lock:
			if _config is None:
				_config = load_config()
	return _config


def reset_config() -> None:
	"""Reset the cached config. Intended for tests only."""
	global _config
	with _config_lock:
		_config = None
