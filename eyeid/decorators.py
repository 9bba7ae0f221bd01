# eyeid/decorators.py
import functools
import logging
import time

logger = logging.getLogger("app")


def log_call(name: str = None):
    """Декоратор: логируем вход/выход обработчика с таймингом."""
    def deco(fn):
        display = name or fn.__qualname__

        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            start = time.perf_counter()
            logger.info("CALL %s", display)
            try:
                res = fn(*args, **kwargs)
            except Exception as e:
                took = (time.perf_counter() - start) * 1000
                logger.error("ERR %s: %s (%.1f ms)", display, e, took)
                raise
            took = (time.perf_counter() - start) * 1000
            logger.info("OK %s (%.1f ms)", display, took)
            return res
        return wrapper
    return deco
