"""
Centralized configuration for the lobby coordinator.
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()


def _parse_int(env_var: str, default: int) -> int:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _parse_float(env_var: str, default: float) -> float:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Lobby code generation
LOBBY_CODE_MAX_RETRIES = _parse_int("LOBBY_CODE_MAX_RETRIES", 10)
# Conditional create-writes that hit an occupied code restart code generation this many times
LOBBY_CREATE_ATTEMPTS = _parse_int("LOBBY_CREATE_ATTEMPTS", 3)

# Anonymous identity: one automatic retry after this delay
AUTH_RETRY_DELAY_SECONDS = _parse_float("AUTH_RETRY_DELAY_SECONDS", 1.0)

# How long the "reconnecting" banner stays up after connectivity returns
RECONNECTING_CLEAR_SECONDS = _parse_float("RECONNECTING_CLEAR_SECONDS", 2.0)

# In-memory store only: simulated round-trip delay per call (0 = just yield)
STORE_LATENCY_SECONDS = _parse_float("STORE_LATENCY_SECONDS", 0.0)
