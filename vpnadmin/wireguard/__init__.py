#!/usr/bin/env python3
#
# vpnadmin/wireguard/__init__.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""WireGuard peer status, traffic and telemetry."""

from .status import PeerStatus, count_by_status, derive_status, last_seen
from .telemetry import (
	FixtureTelemetrySource,
	PeerTelemetry,
	PeerTelemetrySource,
	WgShowTelemetrySource,
	build_telemetry_source,
	parse_wg_show_dump,
)
from .traffic import PeerCounters, TrafficSummary, aggregate, format_bytes

__all__ = [
	"PeerStatus",
	"count_by_status",
	"derive_status",
	"last_seen",
	"FixtureTelemetrySource",
	"PeerTelemetry",
	"PeerTelemetrySource",
	"WgShowTelemetrySource",
	"build_telemetry_source",
	"parse_wg_show_dump",
	"PeerCounters",
	"TrafficSummary",
	"aggregate",
	"format_bytes",
]
