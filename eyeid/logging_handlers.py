# eyeid/logging_handlers.py
import os
import time
from logging.handlers import BaseRotatingHandler


class SizeAndTimeRotatingFileHandler(BaseRotatingHandler):
    """
    Файловый лог с ротацией по двум условиям:
    - размер текущего файла достиг max_bytes;
    - файлу больше `days` суток.
    Хранит не более `days` архивов: name.1 (свежий) ... name.<days>.
    """

    def __init__(self, filename, mode="a", max_bytes=10 * 1024 * 1024, days=3, encoding="utf-8", delay=False):
        os.makedirs(os.path.dirname(os.path.abspath(filename)), exist_ok=True)
        self.max_bytes = int(max_bytes)
        self.days = max(1, int(days))
        self.opened_at = None
        super().__init__(filename, mode, encoding, delay)
        self._remember_ctime()

    def _remember_ctime(self):
        try:
            self.opened_at = os.path.getctime(self.baseFilename)
        except OSError:
            self.opened_at = time.time()

    def _too_old(self, now: float) -> bool:
        return (now - self.opened_at) >= self.days * 86400

    def shouldRollover(self, record):
        if self.stream is None:
            self.stream = self._open()
        if self.max_bytes > 0:
            self.stream.flush()
            if self.stream.tell() >= self.max_bytes:
                return True
        return self._too_old(time.time())

    def doRollover(self):
        if self.stream:
            self.stream.close()
            self.stream = None

        oldest = f"{self.baseFilename}.{self.days}"
        if os.path.exists(oldest):
            os.remove(oldest)
        for i in range(self.days - 1, 0, -1):
            src = f"{self.baseFilename}.{i}"
            if os.path.exists(src):
                os.replace(src, f"{self.baseFilename}.{i + 1}")
        if os.path.exists(self.baseFilename):
            os.replace(self.baseFilename, f"{self.baseFilename}.1")

        self.stream = self._open()
        self._remember_ctime()
