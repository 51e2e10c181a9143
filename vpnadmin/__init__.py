#!/usr/bin/env python3
#
# vpnadmin/__init__.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""vpnadmin – admin API for a WireGuard VPN."""

from .main import create_app

__all__ = ["create_app"]
