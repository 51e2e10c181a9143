#!/usr/bin/env python3
#
# vpnadmin/utils/network.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Client address helpers."""

from __future__ import annotations

import ipaddress

from fastapi import Request

from ..security.events import ClientInfo

__all__ = [
	"TRUSTED_PROXIES",
	"get_client_ip",
	"get_client_info",
]

# Proxy headers are honoured only when the direct peer is one of these
TRUSTED_PROXIES = frozenset({"127.0.0.1", "::1"})

_MAX_USER_AGENT = 512


def _valid_ip(value: str) -> str | None:
	value = value.strip()
	try:
		ipaddress.ip_address(value)
	except ValueError:
		return None
	return value


def get_client_ip(request: Request) -> str:
	"""Return the client IP, trusting X-Forwarded-For/X-Real-IP only from local proxies."""
	direct_ip = request.client.host if request.client else "unknown"

	if direct_ip in TRUSTED_PROXIES:
		forwarded_for = request.headers.get("X-Forwarded-For")
		if forwarded_for:
			ip = _valid_ip(forwarded_for.split(",")[0])
			if ip:
				return ip
		x_real_ip = request.headers.get("X-Real-IP")
		if x_real_ip:
			ip = _valid_ip(x_real_ip)
			if ip:
				return ip

	return direct_ip


def get_client_info(request: Request) -> ClientInfo:
	"""IP and (truncated) user agent of the caller."""
	user_agent = request.headers.get("User-Agent")
	if user_agent:
		user_agent = user_agent[:_MAX_USER_AGENT]
	return ClientInfo(ip_address=get_client_ip(request), user_agent=user_agent)
