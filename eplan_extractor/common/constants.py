"""Application constants."""

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)
BROWSER_LAUNCH_ARGS = ("--no-sandbox", "--disable-setuid-sandbox")

DEFAULT_DASHBOARD_URL = "https://eplanla.lacity.org/dashboard/dashboard"
DEFAULT_ARCHIVED_URL = "https://eplanla.lacity.org/Dashboard/Dashboard?Arc=True"

USERNAME_SELECTOR = "input[name='username']"
PASSWORD_SELECTOR = "input[name='password']"
BUTTON_SELECTOR = "button"
LOGGED_IN_SELECTOR = ".ArchLabel"
RECORD_ROW_SELECTOR = ".searchField"
SUBMIT_BUTTON_TEXTS = frozenset({"continue", "next", "sign in", "submit", "log in"})

DEFAULT_TIMEOUT_MS = 30000

ARCHIVED_TAG_ACTIVE = "Active"
ARCHIVED_TAG_ARCHIVED = "Archived"

STAGES = ("run", "parse", "deliver")
EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "source",
    "event",
    "status",
    "attempt",
    "duration_ms",
    "rows_in",
    "rows_out",
    "error_code",
    "message",
)
