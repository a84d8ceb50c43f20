from pathlib import Path
import sys
import os
from dotenv import load_dotenv
import dj_database_url
from urllib.parse import urlparse, parse_qsl

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# Rental apps live in rental_core so the project package stays thin.
CORE_DIR = BASE_DIR / "rental_core"
if CORE_DIR.exists():
    sys.path.insert(0, str(CORE_DIR))

# Load environment variables from .env (default) or .env.example (fallback)
_env_file = os.getenv("ENV_FILE")
if _env_file:
    # Load an explicit env file first (e.g. for CI or alternate configs).
    # Then load .env.example as a "defaults" layer (does not override).
    load_dotenv(_env_file)
    load_dotenv(BASE_DIR / '.env.example', override=False)
else:
    load_dotenv(BASE_DIR / '.env')
    load_dotenv(BASE_DIR / '.env.example', override=False)


def _env_truthy(value, default=False):
    """Return True when the provided environment value represents truthy."""

    if value is None:
        return default
    return str(value).strip().lower() in {'1', 'true', 'yes', 'on'}


def _env_int(name, default):
    try:
        value = int(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv('SECRET_KEY', 'django-insecure-local-development-key')

DEBUG = _env_truthy(os.getenv('DEBUG'), True)

# Branding defaults used on exported reports
RENTAL_BUSINESS_NAME = os.getenv("RENTAL_BUSINESS_NAME", "Car Rental").strip() or "Car Rental"
RENTAL_CURRENCY = os.getenv("RENTAL_CURRENCY", "PKR").strip() or "PKR"

# Dashboard configuration
DASHBOARD_REVENUE_MONTHS = _env_int('DASHBOARD_REVENUE_MONTHS', 6)
DASHBOARD_TOP_CUSTOMERS = _env_int('DASHBOARD_TOP_CUSTOMERS', 5)
DASHBOARD_RECENT_ITEMS = _env_int('DASHBOARD_RECENT_ITEMS', 5)

_DEFAULT_ALLOWED_HOSTS = [
    'localhost',
    '127.0.0.1',
    'testserver',
]

_allowed_hosts_env = os.getenv('ALLOWED_HOSTS')
_configured_hosts = (
    [h.strip() for h in _allowed_hosts_env.split(',') if h.strip()]
    if _allowed_hosts_env
    else []
)

ALLOWED_HOSTS = []
for _host in _DEFAULT_ALLOWED_HOSTS + _configured_hosts:
    if _host not in ALLOWED_HOSTS:
        ALLOWED_HOSTS.append(_host)

# CSRF trusted origins (comma-separated) e.g. https://admin.example.com
_csrf_env = os.getenv('CSRF_TRUSTED_ORIGINS', '')
if _csrf_env:
    CSRF_TRUSTED_ORIGINS = [o.strip() for o in _csrf_env.split(',') if o.strip()]
else:
    CSRF_TRUSTED_ORIGINS = [
        'http://localhost:8000',
        'http://127.0.0.1:8000',
    ]

# Application definition

INSTALLED_APPS = [
    'django.contrib.staticfiles',
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'corsheaders',
    'rest_framework',
    'rest_framework.authtoken',
    'rentals.apps.RentalsConfig',
    'api',
]

MIDDLEWARE = [
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.security.SecurityMiddleware',
    'whitenoise.middleware.WhiteNoiseMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

# The admin client runs on its own origin; allow everything unless a list is given.
_cors_env = os.getenv('CORS_ALLOWED_ORIGINS', '')
if _cors_env:
    CORS_ALLOWED_ORIGINS = [o.strip() for o in _cors_env.split(',') if o.strip()]
else:
    CORS_ORIGIN_ALLOW_ALL = True
CORS_ALLOW_CREDENTIALS = True

ROOT_URLCONF = 'rental_admin.urls'

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

WSGI_APPLICATION = 'rental_admin.wsgi.application'

# Database
# https://docs.djangoproject.com/en/5.0/ref/settings/#databases

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'db.sqlite3',
    }
}

# Keep SQLite when explicitly requested (local runs and CI).
_force_sqlite = _env_truthy(os.getenv('FORCE_SQLITE'), False)

# Enable DATABASE_URL parsing when provided; fallback stays SQLite
_raw_db_url = os.getenv('DATABASE_URL', '')
_clean_db_url = _raw_db_url.strip().strip('"').strip("'")
if (not _force_sqlite) and _clean_db_url:
    try:
        DATABASES['default'] = dj_database_url.parse(
            _clean_db_url,
            conn_max_age=600,
            ssl_require=_env_truthy(os.getenv('DB_SSL_REQUIRE'), False),
        )
    except ValueError:
        # Fallback manual parse for Postgres URLs if dj_database_url rejects the scheme
        _u = urlparse(_clean_db_url)
        if _u.scheme in ('postgres', 'postgresql', 'pgsql'):
            _opts = dict(parse_qsl(_u.query or ''))
            if _env_truthy(os.getenv('DB_SSL_REQUIRE'), False) and 'sslmode' not in _opts:
                _opts['sslmode'] = 'require'
            DATABASES['default'] = {
                'ENGINE': 'django.db.backends.postgresql',
                'NAME': (_u.path or '').lstrip('/'),
                'USER': _u.username,
                'PASSWORD': _u.password,
                'HOST': _u.hostname,
                'PORT': _u.port or 5432,
                'OPTIONS': _opts,
            }

# Password validation
# https://docs.djangoproject.com/en/5.0/ref/settings/#auth-password-validators

AUTH_PASSWORD_VALIDATORS = [
    {
        'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator',
        'OPTIONS': {
            'min_length': 8,
        }
    },
    {
        'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator',
    },
]

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'rest_framework.authentication.TokenAuthentication',
        'rest_framework.authentication.SessionAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAuthenticated',
    ],
    'EXCEPTION_HANDLER': 'api.exceptions.rental_exception_handler',
    'COERCE_DECIMAL_TO_STRING': False,
}

# Internationalization
# https://docs.djangoproject.com/en/5.0/topics/i18n/

LANGUAGE_CODE = 'en-us'

TIME_ZONE = os.getenv('TIME_ZONE', 'Asia/Karachi')

USE_I18N = True

USE_TZ = True

# Static files (CSS, JavaScript, Images)
# https://docs.djangoproject.com/en/5.0/howto/static-files/

STATIC_URL = '/static/'
STATIC_ROOT = os.path.join(BASE_DIR, 'staticfiles')

# Whitenoise static files in production
if not DEBUG:
    STORAGES = {
        'default': {'BACKEND': 'django.core.files.storage.FileSystemStorage'},
        'staticfiles': {'BACKEND': 'whitenoise.storage.StaticFilesStorage'},
    }
    WHITENOISE_MANIFEST_STRICT = False
    SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True
    SECURE_SSL_REDIRECT = _env_truthy(os.getenv('SECURE_SSL_REDIRECT'), False)

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').strip().upper() or 'INFO'
LOG_TO_FILE = _env_truthy(os.getenv('LOG_TO_FILE'), False)
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'standard': {
            'format': '%(asctime)s %(levelname)s %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'standard',
        },
        **({
            'file': {
                'level': 'INFO',
                'class': 'logging.FileHandler',
                'filename': os.path.join(BASE_DIR, 'logs', 'rentals.log'),
                'formatter': 'standard',
            }
        } if LOG_TO_FILE else {})
    },
    'root': {
        'handlers': ['console'],
        'level': LOG_LEVEL,
    },
    'loggers': {
        'rentals': {
            'handlers': ['file'] if LOG_TO_FILE else ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        'api': {
            'handlers': ['file'] if LOG_TO_FILE else ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
    },
}
