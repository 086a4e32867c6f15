"""Internal constants shared across the library."""

USER_AGENT = "dashsync/1"

# Resource classes with a poll loop, in start order.
POLL_CLASSES: tuple[str, ...] = ("processing", "uploads", "scheduler", "metrics", "logs")

# ------------------------------------------------------------------
# REST endpoints
# ------------------------------------------------------------------

LOGIN_ENDPOINT = "/auth/login"
LOGOUT_ENDPOINT = "/auth/logout"
ME_ENDPOINT = "/auth/me"

PROCESSING_JOBS_ENDPOINT = "/api/processing/jobs"
PROCESSING_START_ENDPOINT = "/api/processing/start"
UPLOADS_ENDPOINT = "/api/uploads"
SCHEDULER_STATUS_ENDPOINT = "/api/scheduler/status"
SCHEDULER_CONFIG_ENDPOINT = "/api/scheduler/config"
SCHEDULER_JOBS_ENDPOINT = "/api/scheduler/jobs"
METRICS_ENDPOINT = "/api/dashboard/stats"
LOGS_ENDPOINT = "/api/system/logs"

# ------------------------------------------------------------------
# Push channel message kinds
# ------------------------------------------------------------------

MSG_METRICS_UPDATE = "metrics_update"
MSG_JOB_UPDATE = "job_update"
MSG_UPLOAD_PROGRESS = "upload_progress"
MSG_UPLOAD_COMPLETE = "upload_complete"
MSG_SYSTEM_ALERT = "system_alert"
MSG_ERROR = "error"

PROCESSING_ACTIONS: frozenset[str] = frozenset({"start", "pause", "resume", "cancel"})
SCHEDULER_ACTIONS: frozenset[str] = frozenset({"start", "stop"})

# Status every entity class uses once it no longer exists upstream.
STATUS_REMOVED = "removed"
