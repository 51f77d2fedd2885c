"""Application-wide constants.

This module centralizes magic numbers used by the difficulty policy,
the assessment engine and the caching layer. Values that need to be
configurable at runtime should go in config.py instead.
"""

# ===================
# Difficulty
# ===================

# Difficulty level range (1 = easiest, 10 = hardest)
MIN_DIFFICULTY_LEVEL = 1
MAX_DIFFICULTY_LEVEL = 10
DEFAULT_DIFFICULTY_LEVEL = 3

# Half-width of the selection band around the target difficulty
DIFFICULTY_WINDOW_RADIUS = 1


# ===================
# Scoring
# ===================

BASE_POINTS_PER_LEVEL = 10
BONUS_POINTS_PER_LEVEL = 5
INCORRECT_PENALTY_RATIO = 0.3
STREAK_MULTIPLIER_STEP = 0.1


# ===================
# Streak Decay
# ===================

# Inactivity after which the streak resets
STREAK_DECAY_HOURS = 24

# Difficulty drop applied on decay, and the floor it never goes below
STREAK_DECAY_DIFFICULTY_DROP = 2
STREAK_DECAY_DIFFICULTY_FLOOR = 3


# ===================
# Recent Performance
# ===================

# AnswerLog rows fed to the policy on each submission
RECENT_PERFORMANCE_LIMIT = 10

# Windows used by adjust_difficulty
SHORT_WINDOW_SIZE = 3
LONG_WINDOW_SIZE = 5
HIGH_ACCURACY_THRESHOLD = 0.8
LOW_ACCURACY_THRESHOLD = 0.4

# Entries echoed verbatim by performance_summary
SUMMARY_RECENT_ENTRIES = 10

# AnswerLog rows considered by the metrics endpoint
METRICS_HISTORY_LIMIT = 50


# ===================
# Caching
# ===================

CACHE_TTL_USER_STATE_SECONDS = 300  # 5 minutes
CACHE_TTL_QUESTION_POOL_SECONDS = 3600  # 1 hour
CACHE_TTL_LEADERBOARD_SECONDS = 60  # 1 minute

# Durable fetch limit per difficulty bucket
DEFAULT_QUESTION_POOL_SIZE = 50


# ===================
# Leaderboard
# ===================

DEFAULT_LEADERBOARD_LIMIT = 50
MAX_LEADERBOARD_LIMIT = 100


# ===================
# Input Limits
# ===================

MAX_ANSWER_LENGTH = 1000
MAX_IDEMPOTENCY_KEY_LENGTH = 128


# ===================
# Logging
# ===================

# Request ID format validation pattern
REQUEST_ID_PATTERN = r'^[a-zA-Z0-9\-_]{1,64}$'


# ===================
# Health Checks
# ===================

DB_HEALTH_CHECK_MAX_RETRIES = 3
DB_HEALTH_CHECK_RETRY_DELAY_SECONDS = 1.0
STARTUP_MAX_RETRIES = 5
STARTUP_RETRY_DELAY_SECONDS = 2.0
