"""Application-wide constants.

These are fixed values that don't change between environments.
For configurable values, see config.py Settings.
"""

# ─────────────────────────────────────────────────────────────
# Monitoring pass defaults (can be overridden in Settings)
# ─────────────────────────────────────────────────────────────
DEFAULT_MONITORING_BATCH_SIZE = 20
DEFAULT_MONITORING_CONCURRENCY = 5
DEFAULT_MONITORING_SCORE_THRESHOLD = 5.0  # absolute score points
DEFAULT_MONITORING_MAX_EXECUTION_SECONDS = 50.0  # host kills at 60s

# ─────────────────────────────────────────────────────────────
# Reports and notifications
# ─────────────────────────────────────────────────────────────
REPORT_SUMMARY_MAX_CHARS = 500
NOTIFICATION_SUMMARY_MAX_CHARS = 200
REPORT_TYPE_FUNDAMENTAL_CHANGE = "FUNDAMENTAL_CHANGE"
REPORT_RETRY_BASE_DELAY_SECONDS = 1.0
DEFAULT_PUBLIC_BASE_URL = "https://precojusto.ai"

# ─────────────────────────────────────────────────────────────
# Message Limits (platform constraints)
# ─────────────────────────────────────────────────────────────
TELEGRAM_MAX_MESSAGE_LENGTH = 4096  # Telegram API limit

# ─────────────────────────────────────────────────────────────
# Redis keys
# ─────────────────────────────────────────────────────────────
REDIS_PREFIX = "scorewatch"
MONITOR_PASS_LOCK_NAME = "monitor-pass"
MONITOR_PASS_CHANNEL = "scorewatch:monitor:passes"
