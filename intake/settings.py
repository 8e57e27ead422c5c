"""
Django settings for the patient intake service.

Everything environment specific comes from environment variables, with a
`.env` file at the project root loaded first for local development.
Queue engine tunables are grouped in the ``TRIAGE`` dict at the bottom.
"""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv  # type: ignore

BASE_DIR = Path(__file__).resolve().parent.parent
if (BASE_DIR / ".env").exists():
    load_dotenv(dotenv_path=BASE_DIR / ".env")


def _flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


def _csv(name: str, default: str = "") -> list[str]:
    return [v.strip() for v in os.getenv(name, default).split(",") if v.strip()]


ENV = os.getenv("ENV", "dev")
DEBUG = _flag("DEBUG")
ALLOWED_HOSTS: list[str] = _csv("ALLOWED_HOSTS", "127.0.0.1,localhost,testserver")

_INSECURE_KEY = "intake-dev-only-secret-key"
SECRET_KEY = os.getenv("SECRET_KEY") or _INSECURE_KEY

if ENV == "prod":
    if DEBUG:
        raise RuntimeError("DEBUG must be off when ENV=prod")
    if "*" in ALLOWED_HOSTS:
        raise RuntimeError("ALLOWED_HOSTS cannot contain * when ENV=prod")
    if SECRET_KEY == _INSECURE_KEY:
        raise RuntimeError("SECRET_KEY must be set when ENV=prod")

# --- apps -------------------------------------------------------------------
INSTALLED_APPS = [
    "django_prometheus",
    "corsheaders",
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "rest_framework.authtoken",
    "drf_yasg",
    "triage",
]

MIDDLEWARE = [
    "django_prometheus.middleware.PrometheusBeforeMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
    "django_prometheus.middleware.PrometheusAfterMiddleware",
]

ROOT_URLCONF = "intake.urls"
WSGI_APPLICATION = "intake.wsgi.application"
ASGI_APPLICATION = "intake.asgi.application"

# Only the admin and the schema views render templates.
TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

# --- database ---------------------------------------------------------------
# MYSQL_* variables win, then DATABASE_URL, then a local SQLite file.
# Queue writers lock the hospital row (MySQL/Postgres) or open IMMEDIATE
# transactions (SQLite), so every engine serializes one hospital's queue.
CONN_MAX_AGE = int(os.getenv("DB_CONN_MAX_AGE", "120"))


def _mysql_database() -> dict:
    return {
        "ENGINE": "django.db.backends.mysql",
        "NAME": os.environ["MYSQL_NAME"],
        "USER": os.environ["MYSQL_USER"],
        "PASSWORD": os.getenv("MYSQL_PASSWORD", ""),
        "HOST": os.getenv("MYSQL_HOST", "localhost"),
        "PORT": os.getenv("MYSQL_PORT", "3306"),
        "CONN_MAX_AGE": CONN_MAX_AGE,
        "OPTIONS": {
            "charset": "utf8mb4",
            "init_command": "SET sql_mode='STRICT_TRANS_TABLES'",
            "isolation_level": "read committed",
        },
    }


def _sqlite_database() -> dict:
    return {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": (BASE_DIR / "db.sqlite3").as_posix(),
        "OPTIONS": {
            "timeout": int(os.getenv("SQLITE_TIMEOUT", "20")),
            "transaction_mode": "IMMEDIATE",
        },
        # File-backed so test threads share committed state.
        "TEST": {"NAME": os.getenv("TEST_DB_NAME", (BASE_DIR / "test_db.sqlite3").as_posix())},
    }


if os.getenv("MYSQL_NAME") and os.getenv("MYSQL_USER"):
    DATABASES = {"default": _mysql_database()}
elif os.getenv("DATABASE_URL", "").strip():
    import dj_database_url  # type: ignore

    DATABASES = {"default": dj_database_url.parse(os.environ["DATABASE_URL"].strip(), conn_max_age=CONN_MAX_AGE)}
else:
    DATABASES = {"default": _sqlite_database()}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"
AUTH_USER_MODEL = "triage.User"
AUTH_PASSWORD_VALIDATORS = [
    {"NAME": f"django.contrib.auth.password_validation.{name}"}
    for name in ("UserAttributeSimilarityValidator", "MinimumLengthValidator",
                 "CommonPasswordValidator", "NumericPasswordValidator")
]

LANGUAGE_CODE = "en-us"
TIME_ZONE = os.getenv("TIME_ZONE", "UTC")
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"
STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage"},
}

# --- REST framework ---------------------------------------------------------
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": ["triage.authentication.TokenAuthentication"],
    "DEFAULT_PERMISSION_CLASSES": ["rest_framework.permissions.IsAuthenticated"],
    "DEFAULT_PARSER_CLASSES": [
        "rest_framework.parsers.JSONParser",
        "rest_framework.parsers.FormParser",
        "rest_framework.parsers.MultiPartParser",
    ],
    "DEFAULT_THROTTLE_CLASSES": (
        "rest_framework.throttling.AnonRateThrottle",
        "rest_framework.throttling.UserRateThrottle",
    ),
    "DEFAULT_THROTTLE_RATES": {
        "anon": os.getenv("THROTTLE_ANON", "60/min"),
        "user": os.getenv("THROTTLE_USER", "240/min"),
        "intake_upload": os.getenv("THROTTLE_INTAKE_UPLOAD", "60/hour"),
    },
    "UNAUTHENTICATED_USER": None,
    "EXCEPTION_HANDLER": "triage.exceptions.api_exception_handler",
}
APPEND_SLASH = False
SWAGGER_SETTINGS = {"DEFAULT_INFO": "intake.urls.api_info"}

CORS_ALLOWED_ORIGINS = _csv("CORS_ALLOWED_ORIGINS")
CORS_ALLOW_CREDENTIALS = True

# --- cache ------------------------------------------------------------------
# "default" holds throttle counters and sessions; "queues" holds only the
# per-hospital queue snapshots so clearing them never touches the rest.
# Use Redis whenever more than one worker process serves the API.
REDIS_URL = os.getenv("REDIS_URL", "")


def _redis_cache(key_prefix: str) -> dict:
    return {
        "BACKEND": "django_redis.cache.RedisCache",
        "LOCATION": REDIS_URL,
        "KEY_PREFIX": key_prefix,
        "OPTIONS": {
            "CLIENT_CLASS": "django_redis.client.DefaultClient",
            "CONNECTION_POOL_KWARGS": {"max_connections": int(os.getenv("REDIS_MAX_CONN", "50"))},
            "SOCKET_CONNECT_TIMEOUT": 3,
            "SOCKET_TIMEOUT": 3,
        },
    }


if REDIS_URL:
    CACHES = {"default": _redis_cache("intake"), "queues": _redis_cache("intake-queues")}
    SESSION_ENGINE = "django.contrib.sessions.backends.cached_db"
else:
    CACHES = {
        "default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache", "LOCATION": "intake"},
        "queues": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache", "LOCATION": "intake-queues"},
    }

# --- transport security -----------------------------------------------------
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
USE_X_FORWARDED_HOST = True
if ENV == "prod":
    SECURE_HSTS_SECONDS = int(os.getenv("SECURE_HSTS_SECONDS", "3600"))
    SECURE_HSTS_INCLUDE_SUBDOMAINS = True
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True
    SECURE_SSL_REDIRECT = _flag("SECURE_SSL_REDIRECT", "1")

# --- logging ----------------------------------------------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "plain"},
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "triage": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
}

# --- intake -----------------------------------------------------------------
UPLOAD_MAX_MB = int(os.getenv("UPLOAD_MAX_MB", "15"))
# Reports arrive as base64 strings; anything shorter is not an image.
UPLOAD_MIN_CHARS = int(os.getenv("UPLOAD_MIN_CHARS", "100"))

TRIAGE = {
    "QUEUE_CACHE_TTL": int(os.getenv("QUEUE_CACHE_TTL", "30")),
    # "gemini" calls the hosted model; "heuristic" scores locally.
    "SCORING_BACKEND": os.getenv("SCORING_BACKEND", "heuristic"),
    "SCORING_TIMEOUT": float(os.getenv("SCORING_TIMEOUT", "15")),
    "GEMINI_API_KEY": os.getenv("GEMINI_API_KEY", ""),
    "GEMINI_MODEL": os.getenv("GEMINI_MODEL", "gemini-2.0-flash"),
    "GEMINI_ENDPOINT": os.getenv("GEMINI_ENDPOINT", "https://generativelanguage.googleapis.com/v1beta/models"),
    "ADMISSION_MAX_RETRIES": int(os.getenv("ADMISSION_MAX_RETRIES", "3")),
    "RETRY_BACKOFF_SECONDS": float(os.getenv("RETRY_BACKOFF_SECONDS", "0.05")),
    "FALLBACK_SEVERITY": 5,
    "SPECIALTY_RESOLVER": "triage.services.specialty.resolve_specialty",
}
if ENV == "prod" and TRIAGE["SCORING_BACKEND"] == "gemini" and not TRIAGE["GEMINI_API_KEY"]:
    raise RuntimeError("GEMINI_API_KEY must be set when SCORING_BACKEND=gemini in prod")
