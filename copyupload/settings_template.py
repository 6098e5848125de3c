import os

import structlog
from django.core.management.utils import get_random_secret_key

DEFAULT_AUTO_FIELD = "django.db.models.AutoField"

# Build paths inside the project like this: os.path.join(SITE_ROOT_DIR, ...)
COPYUPLOAD_APP_DIR = os.path.abspath(os.path.dirname(__file__))
SITE_ROOT_DIR = os.path.dirname(COPYUPLOAD_APP_DIR)

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", get_random_secret_key())

COPYUPLOAD_ENVIRONMENT = os.environ.get("COPYUPLOAD_ENVIRONMENT", "development")

EMAIL_HOST_USER = ""
EMAIL_HOST_PASSWORD = ""  # nosec
EMAIL_USE_TLS = False
EMAIL_BACKEND = "django.core.mail.backends.smtp.EmailBackend"
EMAIL_HOST = os.getenv("EMAIL_HOST", "localhost")
EMAIL_PORT = 25
DEFAULT_FROM_EMAIL = os.getenv("DEFAULT_FROM_EMAIL", "uploads@localhost")

ALLOWED_HOSTS = ["*"]

DEBUG = False
CSRF_COOKIE_SECURE = False

LANGUAGE_CODE = "en-us"
LOGIN_URL = "/admin/login/"
ROOT_URLCONF = "copyupload.urls"
STATIC_URL = "/static/"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True
WSGI_APPLICATION = "copyupload.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": os.getenv("POSTGRESQL_DB", "copyupload"),
        "USER": os.getenv("POSTGRESQL_USER", "copyupload"),
        "PASSWORD": os.getenv("POSTGRESQL_PW"),
        "HOST": os.getenv("POSTGRESQL_HOST", "localhost"),
        "PORT": os.getenv("POSTGRESQL_PORT", "5432"),
        # Celery workers hold connections across tasks, so don't keep them
        "CONN_MAX_AGE": 0,
    }
}

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django_structlog",
    "importer",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
    "django_structlog.middlewares.RequestMiddleware",
]

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    }
]

REDIS_ADDRESS = os.environ.get("REDIS_ADDRESS", "localhost")
REDIS_PORT = os.environ.get("REDIS_PORT", "")
if REDIS_PORT.isdigit():
    REDIS_PORT = int(REDIS_PORT)
else:
    REDIS_PORT = 6379

if REDIS_ADDRESS and REDIS_PORT:
    CACHES = {
        "default": {
            "BACKEND": "django_redis.cache.RedisCache",
            "LOCATION": f"redis://{REDIS_ADDRESS}:{REDIS_PORT}/1",
            "OPTIONS": {
                "CLIENT_CLASS": "django_redis.client.DefaultClient",
            },
        },
    }
else:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        },
    }

# The result mailbox lives in the session, and the worker writes to it from
# another process, so the engine must be shared between web and worker
SESSION_ENGINE = "django.contrib.sessions.backends.db"
SESSION_SERIALIZER = "django.contrib.sessions.serializers.JSONSerializer"

CELERY_BROKER_URL = f"redis://{REDIS_ADDRESS}:{REDIS_PORT}/0"
CELERY_RESULT_BACKEND = f"redis://{REDIS_ADDRESS}:{REDIS_PORT}/0"

CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_IMPORTS = ("importer.tasks",)

CELERY_BROKER_HEARTBEAT = 0
CELERY_BROKER_CONNECTION_RETRY = True
CELERY_BROKER_CONNECTION_RETRY_ON_STARTUP = True
CELERY_BROKER_TRANSPORT_OPTIONS = {
    "confirm_publish": True,
    "max_retries": 3,
    "interval_start": 0,
    "interval_step": 0.2,
    "interval_max": 0.5,
}

LOG_DIR = os.getenv("COPYUPLOAD_LOG_DIR", os.path.join(SITE_ROOT_DIR, "logs"))

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "filters": {
        "celery_task_id": {"()": "importer.logging.CeleryTaskIDFilter"},
    },
    "formatters": {
        "long": {
            "format": "[{asctime} {levelname} {name}:{lineno}{task_id}] {message}",
            "datefmt": "%Y-%m-%dT%H:%M:%S",
            "style": "{",
        },
        "short": {
            "format": "[{levelname} {name}] {message}",
            "datefmt": "%Y-%m-%dT%H:%M:%S",
            "style": "{",
        },
        "structlog_json": {
            "()": structlog.stdlib.ProcessorFormatter,
            "processor": structlog.processors.JSONRenderer(),
        },
        "structlog_console": {
            "()": structlog.stdlib.ProcessorFormatter,
            "processor": structlog.dev.ConsoleRenderer(),
        },
    },
    "handlers": {
        "stream": {
            "class": "logging.StreamHandler",
            "level": "INFO",
            "formatter": "long",
            "filters": ["celery_task_id"],
        },
        "null": {"level": "INFO", "class": "logging.NullHandler"},
        "file": {
            "class": "logging.handlers.TimedRotatingFileHandler",
            "level": "INFO",
            "formatter": "long",
            "filters": ["celery_task_id"],
            "filename": f"{LOG_DIR}/copyupload.log",
            "when": "H",
            "interval": 3,
            "backupCount": 16,
        },
        "celery": {
            "level": "INFO",
            "class": "logging.handlers.RotatingFileHandler",
            "filename": f"{LOG_DIR}/celery.log",
            "formatter": "long",
            "filters": ["celery_task_id"],
            "maxBytes": 1024 * 1024 * 100,  # 100 mb
        },
        "structlog_file": {
            "class": "logging.handlers.TimedRotatingFileHandler",
            "level": "DEBUG",
            "formatter": "structlog_json",
            "filename": f"{LOG_DIR}/copyupload-json.log",
            "when": "H",
            "interval": 3,
            "backupCount": 16,
        },
        "structlog_console": {
            "class": "logging.StreamHandler",
            "level": "DEBUG",
            "formatter": "structlog_console",
        },
    },
    "loggers": {
        "django": {"handlers": ["file"], "level": "INFO"},
        "celery": {"handlers": ["celery"], "level": "INFO"},
        "copyupload": {"handlers": ["file"], "level": "INFO"},
        "importer": {"handlers": ["file", "celery"], "level": "INFO"},
        "structlog": {
            "handlers": ["structlog_file"],
            "level": "DEBUG",
            "propagate": True,
        },
        "django_structlog": {
            "handlers": ["structlog_file"],
            "level": "DEBUG",
            "propagate": False,
        },
    },
}

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ],
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

MEDIA_URL = "/media/"
MEDIA_ROOT = os.getenv("COPYUPLOAD_MEDIA_ROOT", os.path.join(SITE_ROOT_DIR, "media"))

STORAGES = {
    "default": {
        "BACKEND": "django.core.files.storage.FileSystemStorage",
    },
    "staticfiles": {
        "BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage",
    },
    "uploads": {
        "BACKEND": "django.core.files.storage.FileSystemStorage",
        "OPTIONS": {"location": os.path.join(MEDIA_ROOT, "uploads")},
    },
    "stash": {
        "BACKEND": "django.core.files.storage.FileSystemStorage",
        "OPTIONS": {"location": os.path.join(MEDIA_ROOT, "stash")},
    },
}

################################################################################
# Upload-by-URL settings
################################################################################

# Default timeout, in seconds, for fetching a remote file
COPY_UPLOAD_TIMEOUT = int(os.getenv("COPY_UPLOAD_TIMEOUT", 180))
# Timeout used by queued uploads instead of COPY_UPLOAD_TIMEOUT. 0 disables the
# override.
COPY_UPLOAD_ASYNC_TIMEOUT = int(os.getenv("COPY_UPLOAD_ASYNC_TIMEOUT", 0))

COPY_UPLOAD_MAX_SIZE = int(os.getenv("COPY_UPLOAD_MAX_SIZE", 100 * 1024 * 1024))
# Files larger than this are accepted, but only after the user confirms
COPY_UPLOAD_LARGE_FILE_SIZE = int(
    os.getenv("COPY_UPLOAD_LARGE_FILE_SIZE", 50 * 1024 * 1024)
)

COPY_UPLOAD_ALLOWED_EXTENSIONS = [
    "gif",
    "jpeg",
    "jpg",
    "png",
    "tif",
    "tiff",
    "webp",
    "pdf",
    "svg",
    "txt",
]

# Remote hosts which may be fetched from. An empty list allows any host.
COPY_UPLOAD_DOMAINS = [
    i.strip() for i in os.getenv("COPY_UPLOAD_DOMAINS", "").split(",") if i.strip()
]
