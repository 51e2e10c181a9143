#!/usr/bin/env python3
#
# vpnadmin/wireguard/telemetry.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Peer telemetry sources.

A ``PeerTelemetrySource`` reports live counters and handshakes for the
peers WireGuard knows about. The concrete source is picked once at startup
from configuration:

- ``wg``: runs ``wg show <interface> dump``
- ``fixture``: serves static samples (tests, demos, hosts without WireGuard)
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Iterable, Optional

from ..errors import InfrastructureError
from ..utils.config import Config

_log = logging.getLogger(__name__)

__all__ = [
	"PeerTelemetry",
	"PeerTelemetrySource",
	"WgShowTelemetrySource",
	"FixtureTelemetrySource",
	"parse_wg_show_dump",
	"build_telemetry_source",
]

# Timeout for wg commands (seconds)
WG_COMMAND_TIMEOUT = 10

# Secondary timeout for process cleanup after kill (seconds)
_KILL_WAIT_TIMEOUT = 5


@dataclass(frozen=True)
class PeerTelemetry:
	"""One peer as reported by WireGuard."""
	public_key: str
	endpoint: Optional[str] = None
	allowed_ips: Optional[str] = None
	latest_handshake: int = 0  # epoch seconds, 0 = never
	transfer_rx: int = 0
	transfer_tx: int = 0
	interface: Optional[str] = None


class PeerTelemetrySource(ABC):
	"""Strategy interface for reading peer telemetry."""

	name = "abstract"

	@abstractmethod
	async def fetch(self) -> list[PeerTelemetry]:
		"""Return the current telemetry of all peers.

		Raises:
			InfrastructureError: If the source is unreachable.
		"""


def _safe_int(value: str, default: int = 0) -> int:
	"""Safely parse integer values from wg dump columns."""
	try:
		return int(value) if value else default
	except (TypeError, ValueError):
		return default


def parse_wg_show_dump(stdout: str, default_interface: Optional[str] = None) -> list[PeerTelemetry]:
	"""Parse ``wg show <iface|all> dump`` output into telemetry records.

	Handles both output formats:
	- ``wg show all dump``: 5-col interface lines, 9-col peer lines
	- ``wg show wg0 dump``: 4-col interface line, 8-col peer lines
	"""
	results: list[PeerTelemetry] = []
	last_iface = default_interface

	for line in stdout.strip().splitlines():
		if not line:
			continue
		parts = line.split("\t")

		if len(parts) >= 9:
			offset = 1
			iface = parts[0] or last_iface
		elif len(parts) == 8:
			offset = 0
			iface = last_iface
		else:
			# Interface header line
			if len(parts) == 5:
				last_iface = parts[0]
			continue

		endpoint = parts[offset + 2]
		allowed_ips = parts[offset + 3]
		results.append(PeerTelemetry(
			public_key=parts[offset],
			endpoint=None if endpoint == "(none)" else endpoint,
			allowed_ips=None if allowed_ips == "(none)" else allowed_ips,
			latest_handshake=_safe_int(parts[offset + 4]),
			transfer_rx=_safe_int(parts[offset + 5]),
			transfer_tx=_safe_int(parts[offset + 6]),
			interface=iface,
		))

	return results


async def run_wg_command(*args: str, timeout: float = WG_COMMAND_TIMEOUT) -> tuple[int, str, str]:
	"""Run ``wg`` with the given arguments.

	Raises:
		InfrastructureError: If the binary is missing or the command times out.
	"""
	try:
		proc = await asyncio.create_subprocess_exec(
			"wg",
			*args,
			stdout=asyncio.subprocess.PIPE,
			stderr=asyncio.subprocess.PIPE,
		)
	except OSError as exc:
		raise InfrastructureError(f"Cannot execute wg: {exc}") from exc

	try:
		stdout_bytes, stderr_bytes = await asyncio.wait_for(proc.communicate(), timeout=timeout)
	except asyncio.TimeoutError as exc:
		proc.kill()
		try:
			await asyncio.wait_for(proc.wait(), timeout=_KILL_WAIT_TIMEOUT)
		except asyncio.TimeoutError:
			_log.warning("wg process did not exit after kill")
		raise InfrastructureError(f"wg {' '.join(args)} timed out after {timeout}s") from exc

	return (
		proc.returncode if proc.returncode is not None else 1,
		stdout_bytes.decode("utf-8", errors="replace"),
		stderr_bytes.decode("utf-8", errors="replace"),
	)


class WgShowTelemetrySource(PeerTelemetrySource):
	"""Reads telemetry from the kernel via ``wg show <interface> dump``."""

	name = "wg"

	def __init__(self, interface: str = "wg0", timeout: float = WG_COMMAND_TIMEOUT) -> None:
		self.interface = interface
		self.timeout = timeout

	async def fetch(self) -> list[PeerTelemetry]:
		code, stdout, stderr = await run_wg_command("show", self.interface, "dump", timeout=self.timeout)
		if code != 0:
			raise InfrastructureError(
				f"wg show {self.interface} dump failed (exit {code}): {stderr.strip()}",
				details={"interface": self.interface, "exit_code": code},
			)
		default_iface = None if self.interface == "all" else self.interface
		peers = parse_wg_show_dump(stdout, default_interface=default_iface)
		_log.debug("TELEMETRY source=wg interface=%s peers=%d", self.interface, len(peers))
		return peers


class FixtureTelemetrySource(PeerTelemetrySource):
	"""Serves a fixed list of samples.

	Samples loaded from JSON may give ``handshake_age_seconds`` instead of an
	absolute ``latest_handshake``; the age is resolved against the clock on
	every fetch so fixture peers keep a stable status.
	"""

	name = "fixture"

	def __init__(self, samples: Iterable[PeerTelemetry] = (), *, handshake_ages: Optional[dict[str, int]] = None) -> None:
		self._samples = list(samples)
		self._handshake_ages = dict(handshake_ages or {})

	@classmethod
	def from_json(cls, path: Path) -> "FixtureTelemetrySource":
		"""Load samples from a JSON list of peer objects."""
		try:
			raw = json.loads(Path(path).read_text(encoding="utf-8"))
		except (OSError, json.JSONDecodeError) as exc:
			raise InfrastructureError(f"Cannot read telemetry fixture {path}: {exc}") from exc
		if not isinstance(raw, list):
			raise InfrastructureError(f"Telemetry fixture {path} must contain a JSON list")

		samples: list[PeerTelemetry] = []
		ages: dict[str, int] = {}
		for item in raw:
			sample, age = cls._parse_item(item)
			samples.append(sample)
			if age is not None:
				ages[sample.public_key] = age
		return cls(samples, handshake_ages=ages)

	@staticmethod
	def _parse_item(item: dict[str, Any]) -> tuple[PeerTelemetry, Optional[int]]:
		try:
			sample = PeerTelemetry(
				public_key=str(item["public_key"]),
				endpoint=item.get("endpoint"),
				allowed_ips=item.get("allowed_ips"),
				latest_handshake=int(item.get("latest_handshake") or 0),
				transfer_rx=int(item.get("transfer_rx", 0)),
				transfer_tx=int(item.get("transfer_tx", 0)),
				interface=item.get("interface"),
			)
		except (KeyError, TypeError, ValueError) as exc:
			raise InfrastructureError(f"Invalid telemetry fixture entry {item!r}: {exc}") from exc
		age = item.get("handshake_age_seconds")
		return sample, int(age) if age is not None else None

	async def fetch(self) -> list[PeerTelemetry]:
		if not self._handshake_ages:
			return list(self._samples)
		now = int(time.time())
		return [
			replace(s, latest_handshake=now - self._handshake_ages[s.public_key])
			if s.public_key in self._handshake_ages
			else s
			for s in self._samples
		]


def build_telemetry_source(cfg: Config) -> PeerTelemetrySource:
	"""Construct the telemetry source selected by configuration."""
	if cfg.telemetry_source == "fixture":
		if cfg.telemetry_fixture is not None:
			source = FixtureTelemetrySource.from_json(cfg.telemetry_fixture)
		else:
			source = FixtureTelemetrySource()
		_log.info("TELEMETRY using fixture source (%s)", cfg.telemetry_fixture or "empty")
		return source
	_log.info("TELEMETRY using wg show source (interface=%s)", cfg.wg_interface)
	return WgShowTelemetrySource(cfg.wg_interface)
