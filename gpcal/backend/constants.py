APP_NAME = "gpcal-ai"
APP_VERSION = "1.0.0"
LOGGER_NAMESPACE = "gpcal"

DEFAULT_TRUSTED_HOSTS = [
	"*",
]

DEFAULT_OPENAI_MODEL = "gpt-4.1-mini"
DEFAULT_OPENAI_TIMEOUT_S = 15.0

DEFAULT_RATE_LIMIT_WINDOW_S = 60
DEFAULT_RATE_LIMIT_MAX_REQUESTS = 5
FALLBACK_CLIENT_KEY = "unknown"
RATE_LIMITED_BODY = {"msg": "Too many requests"}

MAX_HISTORY_MESSAGES = 3
MIN_STAGE = 1
MAX_STAGE = 3

NO_STORE_HEADERS = {
	"Cache-Control": "no-store",
}
