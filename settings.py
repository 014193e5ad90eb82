# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2026-01-09
# Updated: 2026-02-14
# Description: settings.py
# -----------------------------------------------------------------------------
import os
from typing import Any, Dict, Optional


def env_str(name: str, default: str = "") -> str:
    """Read env var safely and strip whitespace."""
    return (os.getenv(name) or default).strip()


def env_int(name: str, default: int) -> int:
    v = env_str(name, "")
    if v == "":
        return default
    try:
        return int(v)
    except ValueError as e:
        raise RuntimeError(f"Env var {name} must be an int, got {v!r}") from e


def env_float(name: str, default: float) -> float:
    v = env_str(name, "")
    if v == "":
        return default
    try:
        return float(v)
    except ValueError as e:
        raise RuntimeError(f"Env var {name} must be a float, got {v!r}") from e


def env_optional_float(name: str, default: Optional[float] = None) -> Optional[float]:
    v = env_str(name, "")
    if v == "" or v.lower() in ("none", "null"):
        return default
    return env_float(name, 0.0)


def env_bool(name: str, default: bool) -> bool:
    v = env_str(name, "")
    if v == "":
        return default
    v = v.lower()
    if v in ("1", "true", "t", "yes", "y", "on"):
        return True
    if v in ("0", "false", "f", "no", "n", "off"):
        return False
    raise RuntimeError(f"Env var {name} must be a boolean, got {v!r}")


# -----------------------------------------------------------------------------
# Retrieve() defaults (env-controlled)
# -----------------------------------------------------------------------------
RETRIEVE_DEFAULTS: Dict[str, Any] = {
    "k": env_int("RAG_DEFAULT_K", 5),
    "token_budget": env_int("RAG_DEFAULT_TOKEN_BUDGET", 512),
}

# Upper bound accepted by the HTTP layer for k
MAX_K = env_int("RAG_MAX_K", 50)


# -----------------------------------------------------------------------------
# Chat() defaults (env-controlled)
# -----------------------------------------------------------------------------
CHAT_DEFAULTS: Dict[str, Any] = {
    "temperature": env_float("RAG_DEFAULT_TEMPERATURE", 0.7),
    "max_tokens": env_int("RAG_DEFAULT_MAX_TOKENS", 512),
}


# -----------------------------------------------------------------------------
# Sanity checks (tunable)
# -----------------------------------------------------------------------------
if RETRIEVE_DEFAULTS["k"] < 1 or RETRIEVE_DEFAULTS["k"] > MAX_K:
    raise RuntimeError(f"RAG_DEFAULT_K must be within [1, {MAX_K}]")
