"""Django settings for the tourism survey project.

These settings configure the public survey intake, the admin API and the
analytics endpoints.  Values are read from the environment, optionally
seeded from a local ``.env`` file.  When no PostgreSQL host is configured
the project falls back to a SQLite database file so it can run out of the
box for local development and the test suite.
"""

from __future__ import annotations

import os
import warnings
from pathlib import Path

from django.core.exceptions import ImproperlyConfigured

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# Load environment variables from a local .env file for development setups.
def load_env_file(path: Path) -> None:
    if not path.exists():
        return

    for line in path.read_text().splitlines():
        if not line or line.strip().startswith("#"):
            continue

        if "=" not in line:
            continue

        key, value = line.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip())


# Prefer a local .env file but fall back to .env.sample when the project is
# first checked out. The sample values are insecure and must be overridden in
# real deployments.
env_path = BASE_DIR / ".env"
sample_env_path = BASE_DIR / ".env.sample"

if env_path.exists():
    load_env_file(env_path)
elif sample_env_path.exists():
    warnings.warn(
        ".env not found; using values from .env.sample. Create a .env file to "
        "override these defaults.",
        RuntimeWarning,
        stacklevel=2,
    )
    load_env_file(sample_env_path)


def env_required(name: str) -> str:
    """Fetch a required environment variable or raise a helpful error."""

    value = os.getenv(name)
    if not value:
        raise ImproperlyConfigured(
            f"Set the {name} environment variable (see .env.sample for defaults)."
        )
    return value


def env_flag(name: str, default: str = 'False') -> bool:
    return os.getenv(name, default).lower() in ('true', '1', 'yes')


# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = env_required("DJANGO_SECRET_KEY")

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = env_flag("DJANGO_DEBUG")

ALLOWED_HOSTS: list[str] = [
    host.strip()
    for host in os.getenv("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",")
    if host.strip()
]

# Origins permitted to call the API with credentials (dashboard frontends).
CSRF_TRUSTED_ORIGINS: list[str] = [
    origin.strip()
    for origin in os.getenv("FRONTEND_URL", "").split(",")
    if origin.strip()
]


# Application definition
INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'core',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'whitenoise.middleware.WhiteNoiseMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'core.middleware.AnonymousRespondentMiddleware',
    'core.middleware.SubmissionThrottleMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'tourism_survey.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'tourism_survey.wsgi.application'


# Database
# https://docs.djangoproject.com/en/4.2/ref/settings/#databases
if os.getenv('PGHOST'):
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': os.getenv('PGDATABASE', 'tourism_survey'),
            'USER': os.getenv('PGUSER', 'tourism_survey'),
            'PASSWORD': env_required('PGPASSWORD'),
            'HOST': os.environ['PGHOST'],
            'PORT': os.getenv('PGPORT', '5432'),
            # Keep connections open for a minute to improve performance for repeated queries
            'CONN_MAX_AGE': 60,
            'OPTIONS': {
                'sslmode': os.getenv('PGSSLMODE', 'prefer'),
            },
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
        }
    }

# Sessions live in the ``django_session`` table so anonymous respondents can
# be tracked across requests.  Cookies last a week.
SESSION_ENGINE = 'django.contrib.sessions.backends.db'
SESSION_COOKIE_AGE = 60 * 60 * 24 * 7
SESSION_COOKIE_SECURE = env_flag('SESSION_COOKIE_SECURE')
SESSION_SAVE_EVERY_REQUEST = False

# Password validation
# https://docs.djangoproject.com/en/4.2/ref/settings/#auth-password-validators
AUTH_PASSWORD_VALIDATORS = [
    {
        'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator',
    },
]

# Internationalization
# https://docs.djangoproject.com/en/4.2/topics/i18n/

LANGUAGE_CODE = 'en-us'

TIME_ZONE = os.getenv('DJANGO_TIME_ZONE', 'Asia/Manila')

USE_I18N = True

USE_TZ = True


# Static files (CSS, JavaScript, Images)
# https://docs.djangoproject.com/en/4.2/howto/static-files/
STATIC_URL = '/static/'
STATIC_ROOT = os.path.join(BASE_DIR, 'staticfiles')

# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

LOG_LEVEL = os.getenv('DJANGO_LOG_LEVEL', 'INFO').upper()
LOG_FILE = Path(os.getenv('DJANGO_LOG_FILE', os.path.join(BASE_DIR, 'logs', 'tourism_survey.log')))
LOG_FILE.parent.mkdir(parents=True, exist_ok=True)

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'standard': {
            'format': '%(asctime)s | %(levelname)s | %(name)s | %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'standard',
        },
        'file': {
            'class': 'logging.handlers.RotatingFileHandler',
            'filename': str(LOG_FILE),
            'maxBytes': 8_000_000,
            'backupCount': 4,
            'encoding': 'utf-8',
            'formatter': 'standard',
        },
    },
    'root': {
        'handlers': ['console', 'file'],
        'level': LOG_LEVEL,
    },
    'loggers': {
        'django': {
            'handlers': ['console', 'file'],
            'level': os.getenv('DJANGO_FRAMEWORK_LOG_LEVEL', 'WARNING').upper(),
            'propagate': False,
        },
    },
}


# ---------------------------------------------------------------------------
# External classifier (sentiment, topic and relevance models)
# ---------------------------------------------------------------------------

# Base URL of the hosted inference API.  Model identifiers are appended to
# build the request URL, e.g. ``<base>/models/<model>``.
INFERENCE_API_BASE = os.getenv('INFERENCE_API_BASE', 'https://api-inference.huggingface.co')
TOPIC_MODEL = os.getenv('TOPIC_MODEL', 'facebook/bart-large-cnn')
SENTIMENT_MODEL = os.getenv('SENTIMENT_MODEL', 'cardiffnlp/twitter-xlm-roberta-base-sentiment')
RELEVANCE_MODEL = os.getenv('RELEVANCE_MODEL', 'facebook/bart-large-mnli')
INFERENCE_HTTP_TIMEOUT = int(os.getenv('INFERENCE_HTTP_TIMEOUT', '30'))
INFERENCE_VERIFY_TLS = os.getenv('INFERENCE_VERIFY_TLS', 'True').lower() not in ('false', '0', 'no')
# Maximum number of words kept from a generated topic label.
TOPIC_LABEL_MAX_WORDS = int(os.getenv('TOPIC_LABEL_MAX_WORDS', '4'))
# ``InferenceToken`` label used when a request does not name one.
INFERENCE_TOKEN_LABEL = os.getenv('INFERENCE_TOKEN_LABEL', 'DEV_free')


# ---------------------------------------------------------------------------
# Survey spam limits
# ---------------------------------------------------------------------------

# Submissions one respondent may send within the window before being throttled.
SURVEY_SPAM_THRESHOLD = int(os.getenv('SURVEY_SPAM_THRESHOLD', '10'))
SURVEY_SPAM_WINDOW_SECONDS = int(os.getenv('SURVEY_SPAM_WINDOW_SECONDS', '3600'))


# ---------------------------------------------------------------------------
# Dashboard client
# ---------------------------------------------------------------------------

# Base URL of this API as seen by the dashboard client.  Empty means the
# client is expected to be configured explicitly.
DASHBOARD_API_HOST = os.getenv('DASHBOARD_API_HOST', 'http://localhost:8000')
DASHBOARD_HTTP_TIMEOUT = int(os.getenv('DASHBOARD_HTTP_TIMEOUT', '30'))
# Cached analytics payloads are considered fresh for this many seconds.
DASHBOARD_CACHE_TTL_SECONDS = int(os.getenv('DASHBOARD_CACHE_TTL_SECONDS', '30'))
DASHBOARD_CACHE_ROOT = Path(
    os.getenv('DASHBOARD_CACHE_ROOT', os.path.join(BASE_DIR, 'media', 'dashboard_cache'))
)
DASHBOARD_TOKEN_LABEL = os.getenv('DASHBOARD_TOKEN_LABEL', INFERENCE_TOKEN_LABEL)
