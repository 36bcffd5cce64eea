from .settings import *  # noqa: F401,F403

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

PRIORITY_CLIENT = "GRAN CANARIA"
EVENTS_KEEPALIVE_SECONDS = 1
EVENTS_QUEUE_SIZE = 10
