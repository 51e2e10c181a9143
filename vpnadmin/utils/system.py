#!/usr/bin/env python3
#
# vpnadmin/utils/system.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Host and interface metrics for the dashboard.

Values come straight from procfs and sysfs. Anything that cannot be read
(non-Linux host, container without /proc, interface down) is reported as
None instead of being guessed.
"""

from __future__ import annotations

import logging
import os
import platform
import shutil
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Optional

_log = logging.getLogger(__name__)

PROC_ROOT = Path("/proc")
NET_CLASS_ROOT = Path("/sys/class/net")

_INTERFACE_COUNTERS = ("rx_bytes", "tx_bytes", "rx_packets", "tx_packets")


@dataclass(frozen=True)
class InterfaceCounters:
	name: str
	rx_bytes: int
	tx_bytes: int
	rx_packets: int
	tx_packets: int


@dataclass(frozen=True)
class SystemMetrics:
	hostname: str
	platform: str
	arch: str
	kernel: str
	cpu_count: int
	uptime_seconds: Optional[float]
	load_average: Optional[tuple[float, float, float]]
	memory: Optional[dict[str, Any]]
	disk: Optional[dict[str, Any]]
	interface: Optional[InterfaceCounters]

	def as_dict(self) -> dict[str, Any]:
		data = asdict(self)
		data["load_average"] = list(self.load_average) if self.load_average else None
		return data


def _read_text(path: Path) -> Optional[str]:
	try:
		return path.read_text(encoding="utf-8")
	except OSError as exc:
		_log.debug("SYSTEM_METRICS cannot read %s: %s", path, exc)
		return None


def read_uptime(proc_root: Path = PROC_ROOT) -> Optional[float]:
	"""Seconds since boot from ``/proc/uptime``."""
	raw = _read_text(proc_root / "uptime")
	if not raw:
		return None
	try:
		return float(raw.split()[0])
	except (IndexError, ValueError):
		return None


def read_load_average(proc_root: Path = PROC_ROOT) -> Optional[tuple[float, float, float]]:
	raw = _read_text(proc_root / "loadavg")
	if not raw:
		return None
	parts = raw.split()
	try:
		return float(parts[0]), float(parts[1]), float(parts[2])
	except (IndexError, ValueError):
		return None


def read_memory(proc_root: Path = PROC_ROOT) -> Optional[dict[str, Any]]:
	"""Total, available and used memory in bytes from ``/proc/meminfo``.

	Falls back to ``MemFree`` on kernels that predate ``MemAvailable``.
	"""
	raw = _read_text(proc_root / "meminfo")
	if not raw:
		return None

	values: dict[str, int] = {}
	for line in raw.splitlines():
		parts = line.split()
		if len(parts) >= 2 and parts[1].isdigit():
			values[parts[0].rstrip(":")] = int(parts[1]) * 1024

	total = values.get("MemTotal")
	available = values.get("MemAvailable", values.get("MemFree"))
	if not total or available is None:
		return None
	used = total - available
	return {
		"total": total,
		"available": available,
		"used": used,
		"usage_percent": round(used * 100 / total, 1),
	}


def read_disk_usage(path: Path) -> Optional[dict[str, Any]]:
	try:
		usage = shutil.disk_usage(path)
	except OSError as exc:
		_log.debug("SYSTEM_METRICS disk usage failed for %s: %s", path, exc)
		return None
	return {
		"path": str(path),
		"total": usage.total,
		"used": usage.used,
		"free": usage.free,
		"usage_percent": round(usage.used * 100 / usage.total, 1) if usage.total else 0.0,
	}


def read_interface_counters(name: str, net_root: Path = NET_CLASS_ROOT) -> Optional[InterfaceCounters]:
	"""Kernel byte and packet counters of one network interface."""
	counters = {}
	for counter in _INTERFACE_COUNTERS:
		raw = _read_text(net_root / name / "statistics" / counter)
		if raw is None:
			return None
		try:
			counters[counter] = int(raw.strip())
		except ValueError:
			return None
	return InterfaceCounters(name=name, **counters)


def collect_system_metrics(
	*,
	interface: Optional[str],
	disk_path: Path,
	proc_root: Path = PROC_ROOT,
	net_root: Path = NET_CLASS_ROOT,
) -> SystemMetrics:
	"""Snapshot of the host. Blocking file reads; call from a worker thread."""
	return SystemMetrics(
		hostname=platform.node(),
		platform=platform.system().lower(),
		arch=platform.machine(),
		kernel=platform.release(),
		cpu_count=os.cpu_count() or 1,
		uptime_seconds=read_uptime(proc_root),
		load_average=read_load_average(proc_root),
		memory=read_memory(proc_root),
		disk=read_disk_usage(disk_path),
		interface=read_interface_counters(interface, net_root) if interface else None,
	)
