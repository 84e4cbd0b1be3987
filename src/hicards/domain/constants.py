"""Centralized constants for hicards.

All magic numbers and configuration defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Storage ----------
STORAGE_VERSION = "1.0"
STORAGE_KEY = "fsrs"
DAILY_STATS_RETENTION = 30  # days kept in the rolling window

# ---------- Time ----------
SECONDS_PER_DAY = 86400.0
SAVE_DELAY = 1.0  # seconds, debounce for card writes

# ---------- FSRS ----------
DECAY = -0.5
FACTOR = 19 / 81
REQUEST_RETENTION = 0.9
MAXIMUM_INTERVAL = 36500  # days
DEFAULT_WEIGHTS = (
    0.4872, 1.4003, 3.7145, 13.8206, 5.1618, 1.2298, 0.8975, 0.031, 1.6474,
    0.1367, 1.0461, 2.1072, 0.0793, 0.3246, 1.587, 0.2272, 2.8755,
)
MIN_WEIGHTS = 13  # w[0]..w[12] are read by the memory model

STABILITY_FLOOR = 0.1
DIFFICULTY_MIN = 1.0
DIFFICULTY_MAX = 10.0
INITIAL_DIFFICULTY = 5.0

# ---------- Quotas ----------
NEW_CARDS_PER_DAY = 20
REVIEWS_PER_DAY = 100

# ---------- Identifiers ----------
CARD_ID_PREFIX = "card_"
GROUP_ID_PREFIX = "group_"
