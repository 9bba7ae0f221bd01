# eyeid/settings.py
import os
from pathlib import Path

from .logging_config import LOGGING  # noqa: F401

BASE_DIR = Path(__file__).resolve().parent.parent


def _env(name: str, default: str) -> str:
    return os.environ.get(f"EYEID_{name}", default)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(f"EYEID_{name}")
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


SECRET_KEY = _env("SECRET_KEY", "dev-insecure-eyeid-key")
DEBUG = _env_bool("DEBUG", True)
ALLOWED_HOSTS = [h for h in _env("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h]

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.staticfiles",
    "recognition",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "eyeid.urls"
WSGI_APPLICATION = "eyeid.wsgi.application"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
            ],
        },
    },
]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

SESSION_ENGINE = "django.contrib.sessions.backends.signed_cookies"

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = False
USE_TZ = True

STATIC_URL = "static/"
MEDIA_ROOT = Path(_env("MEDIA_ROOT", str(BASE_DIR / "media")))
MEDIA_URL = "media/"
DATA_UPLOAD_MAX_MEMORY_SIZE = 16 * 1024 * 1024

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ---- Модели ----
FACE_BACKEND = _env("FACE_BACKEND", "insightface")  # insightface | yolo
WEIGHTS_DIR = Path(_env("WEIGHTS_DIR", str(BASE_DIR / "weights")))
MODEL_FALLBACK_ROOT = Path(_env("MODEL_FALLBACK_ROOT", str(Path.home() / ".insightface")))
INSIGHT_BUNDLE = _env("INSIGHT_BUNDLE", "buffalo_l")
YOLO_WEIGHTS = _env("YOLO_WEIGHTS", str(WEIGHTS_DIR / "yolo11n-face.pt"))
ARCFACE_ONNX = _env("ARCFACE_ONNX", str(WEIGHTS_DIR / "glintr100.onnx"))
DEVICE = _env("DEVICE", "cpu")
PRELOAD_MODELS = _env_bool("PRELOAD_MODELS", False)

# ---- Валидация изображения ----
DETECTION_SCORE_THRESHOLD = float(_env("DETECTION_SCORE_THRESHOLD", "0.5"))
MIN_DETECTION_CONFIDENCE = float(_env("MIN_DETECTION_CONFIDENCE", "0.7"))
MIN_IMAGE_SIDE = int(_env("MIN_IMAGE_SIDE", "100"))
MAX_IMAGE_SIDE = int(_env("MAX_IMAGE_SIDE", "2000"))
BLUR_THRESHOLD = float(_env("BLUR_THRESHOLD", "100"))
MAX_UPLOAD_BYTES = int(_env("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))

# ---- Сопоставление с профилями ----
FACE_MATCH_THRESHOLD = float(_env("FACE_MATCH_THRESHOLD", "0.5"))
PROFILE_IMAGES_DIR = Path(_env("PROFILE_IMAGES_DIR", str(BASE_DIR / "profiles")))
PROFILE_EMBEDDINGS_CACHE = Path(_env("PROFILE_EMBEDDINGS_CACHE", str(BASE_DIR / "weights" / "profile_embeddings.npz")))
PROFILE_FETCH_TIMEOUT = int(_env("PROFILE_FETCH_TIMEOUT", "20"))

# ---- Хранение снимков ----
CAPTURE_RETENTION_HOURS = int(_env("CAPTURE_RETENTION_HOURS", "24"))
SAVE_ANNOTATED_CAPTURES = _env_bool("SAVE_ANNOTATED_CAPTURES", False)

# ---- MLflow (пусто = выключено) ----
MLFLOW_TRACKING_URI = _env("MLFLOW_TRACKING_URI", "")
MLFLOW_EXPERIMENT = _env("MLFLOW_EXPERIMENT", "eye_scan_matching")
