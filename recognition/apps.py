# recognition/apps.py
import logging
import threading

from django.apps import AppConfig
from django.conf import settings

logger = logging.getLogger("app")


def warm_up() -> None:
    """Модели + эмбеддинги профилей заранее, чтобы первый снимок не ждал загрузку."""
    from .services.model_loader import ensure_models
    from .services.profile_index import get_profile_index

    try:
        analyzer = ensure_models()
        index = get_profile_index()
        index.entries(analyzer)
        logger.info("Warm-up done: %d profiles indexed", len(index))
    except Exception as e:
        logger.error("Warm-up failed: %s", e)


class RecognitionConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "recognition"

    def ready(self):
        if getattr(settings, "PRELOAD_MODELS", False):
            threading.Thread(target=warm_up, name="eyeid-warmup", daemon=True).start()
