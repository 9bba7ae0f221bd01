# recognition/tests/test_logging.py
import logging
import tempfile
import time
from pathlib import Path

from django.test import SimpleTestCase

from eyeid.decorators import log_call
from eyeid.filters import AsciiOnlyFilter
from eyeid.logging_handlers import SizeAndTimeRotatingFileHandler


def _record(msg, *args):
    return logging.LogRecord("app", logging.INFO, __file__, 1, msg, args, None)


class AsciiOnlyFilterTest(SimpleTestCase):
    def test_non_ascii_replaced(self):
        rec = _record("Снимок %s", "ok")
        self.assertTrue(AsciiOnlyFilter().filter(rec))
        self.assertEqual(rec.getMessage(), "?????? ok")

    def test_ascii_untouched(self):
        rec = _record("match %s", "001")
        AsciiOnlyFilter().filter(rec)
        self.assertEqual(rec.msg, "match %s")
        self.assertEqual(rec.args, ("001",))


class RotatingHandlerTest(SimpleTestCase):
    def _handler(self, tmp, **kw):
        h = SizeAndTimeRotatingFileHandler(str(Path(tmp) / "nested" / "app.log"), **kw)
        h.setFormatter(logging.Formatter("%(message)s"))
        self.addCleanup(h.close)
        return h

    def test_rotates_by_size_and_keeps_days_archives(self):
        with tempfile.TemporaryDirectory() as tmp:
            h = self._handler(tmp, max_bytes=20, days=2)
            for i in range(6):
                h.emit(_record("line number %d" % i))
            h.close()
            names = sorted(p.name for p in (Path(tmp) / "nested").iterdir())
        self.assertEqual(names, ["app.log", "app.log.1", "app.log.2"])

    def test_rotates_by_age(self):
        with tempfile.TemporaryDirectory() as tmp:
            h = self._handler(tmp, max_bytes=0, days=1)
            h.emit(_record("first"))
            h.opened_at = time.time() - 2 * 86400
            h.emit(_record("second"))
            h.close()
            base = Path(tmp) / "nested" / "app.log"
            self.assertEqual(base.read_text(encoding="utf-8").strip(), "second")
            self.assertEqual(Path(f"{base}.1").read_text(encoding="utf-8").strip(), "first")


class LogCallTest(SimpleTestCase):
    def test_logs_and_reraises(self):
        @log_call("boom")
        def boom():
            raise RuntimeError("bad")

        with self.assertLogs("app", level="INFO") as logs:
            with self.assertRaises(RuntimeError):
                boom()
        self.assertTrue(logs.output[0].endswith("CALL boom"))
        self.assertIn("ERR boom: bad", logs.output[1])

    def test_ok_path(self):
        @log_call()
        def ok():
            return 42

        with self.assertLogs("app", level="INFO") as logs:
            self.assertEqual(ok(), 42)
        self.assertIn("OK ", logs.output[-1])
