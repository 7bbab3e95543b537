"""Centralized constants for the evomind scheduler.

All magic numbers and defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Ease factor ----------
MIN_EASE_FACTOR = 1.3
DEFAULT_EASE_FACTOR = 2.5
RESET_EASE_PENALTY = 0.2

# ---------- Intervals (days) ----------
INITIAL_INTERVAL = 1
SECOND_INTERVAL = 6
MAX_INTERVAL_DAYS = 7300  # ~20 years

# ---------- Quality scale ----------
MIN_QUALITY = 0
MAX_QUALITY = 5
PASSING_QUALITY = 3

# ---------- Urgency buckets: (max days overdue, weight) ----------
URGENCY_BUCKETS = [
    (0, 0.0),
    (1, 0.3),
    (3, 0.6),
    (7, 0.8),
]
URGENCY_MAX = 1.0

# ---------- Stats ----------
STATS_WEEK_DAYS = 7

# ---------- Id prefixes ----------
CARD_ID_PREFIX = "card"
SESSION_ID_PREFIX = "rs"
