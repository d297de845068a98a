"""System-wide constants. All magic numbers and strings live here."""

from __future__ import annotations

# ── Store Keys ───────────────────────────────────────────────────
USAGE_KEY_PREFIX = "usage"
RATE_LIMIT_KEY_PREFIX = "ratelimit"

# ── Rate Limiting ────────────────────────────────────────────────
RATE_LIMIT_WINDOW_SECONDS = 60
RATE_LIMIT_BUCKET_TTL_SECONDS = 120  # own minute plus one cycle of buffer
RATE_LIMIT_RETRY_AFTER_SECONDS = 60
DEFAULT_RATE_LIMIT_PER_MINUTE = 100

# ── Tiers ────────────────────────────────────────────────────────
DEFAULT_TIER = "free"
UNLIMITED_LABEL = "unlimited"

# ── API ──────────────────────────────────────────────────────────
API_VERSION = "0.1.0"
