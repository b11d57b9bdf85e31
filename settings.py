import os
from pathlib import Path

from django.core.exceptions import ImproperlyConfigured
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent

load_dotenv()

KFAR_ENV = os.getenv("KFAR_ENV", "development")
IS_PRODUCTION = KFAR_ENV == "production"

SECRET_KEY = os.getenv("SECRET_KEY")

if not SECRET_KEY:
    if IS_PRODUCTION:
        raise ImproperlyConfigured("SECRET_KEY is not set in the environment variables.")
    SECRET_KEY = "kfar-dev-secret-key"

DEBUG = os.getenv("DEBUG", "False" if IS_PRODUCTION else "True") == "True"

ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",")

KFAR_APP_URL = os.getenv("KFAR_APP_URL")

if not KFAR_APP_URL:
    if IS_PRODUCTION:
        raise ImproperlyConfigured("KFAR_APP_URL is not set in the environment variables.")
    KFAR_APP_URL = "http://localhost:8000"

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "smart_qr",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "urls"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.getenv("DATABASE_PATH", str(BASE_DIR / "db.sqlite3")),
    }
}

LANGUAGE_CODE = "en-us"

TIME_ZONE = "UTC"

USE_I18N = True

USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# QR codes
QR_SIGNING_SECRET = os.getenv("QR_SIGNING_SECRET", SECRET_KEY)
QR_DEFAULT_SIZE = int(os.getenv("QR_DEFAULT_SIZE", "300"))
QR_LOGO_TIMEOUT = float(os.getenv("QR_LOGO_TIMEOUT", "5"))
# Remote logos are fetched by the server, only from these hosts
QR_LOGO_ALLOWED_HOSTS = [host.strip() for host in os.getenv("QR_LOGO_ALLOWED_HOSTS", "").split(",") if host.strip()]

QR_ENRICHMENT_API_URL = os.getenv("QR_ENRICHMENT_API_URL")
QR_ENRICHMENT_API_KEY = os.getenv("QR_ENRICHMENT_API_KEY")
QR_ENRICHMENT_MODEL = os.getenv("QR_ENRICHMENT_MODEL", "deepseek-chat")
QR_ENRICHMENT_TIMEOUT = float(os.getenv("QR_ENRICHMENT_TIMEOUT", "10"))

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "[{levelname}] {asctime} {module} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
    "loggers": {
        "smart_qr": {
            "handlers": ["console"],
            "level": os.getenv("QR_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
}
