# eyeid/filters.py
import logging


class AsciiOnlyFilter(logging.Filter):
    """Заменяет не-ASCII символы (эмодзи, кириллицу) в сообщении на '?'.

    Нужен для консолей Windows с cp1251/cp866, где такие символы роняют StreamHandler.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        if not message.isascii():
            record.msg = message.encode("ascii", "replace").decode("ascii")
            record.args = ()
        return True
