# recognition/tests/test_model_loader.py
import threading
import time
from pathlib import Path
from unittest import mock

from django.test import SimpleTestCase, override_settings

from recognition.services import model_loader
from recognition.services.model_loader import ModelState, ensure_models, model_state, reset_models

from .helpers import FakeAnalyzer


@override_settings(FACE_BACKEND="insightface")
class EnsureModelsTest(SimpleTestCase):
    def setUp(self):
        reset_models()
        self.addCleanup(reset_models)

    def test_loaded_once(self):
        analyzer = FakeAnalyzer()
        factory = mock.Mock(return_value=analyzer)
        with mock.patch.dict(model_loader.BACKENDS, {"insightface": factory}):
            self.assertIs(ensure_models(), analyzer)
            self.assertIs(ensure_models(), analyzer)
        factory.assert_called_once()
        self.assertEqual(model_state(), ModelState.READY)

    def test_concurrent_callers_share_one_load(self):
        calls = []

        def slow_factory():
            calls.append(1)
            time.sleep(0.05)
            return FakeAnalyzer()

        results = []
        with mock.patch.dict(model_loader.BACKENDS, {"insightface": slow_factory}):
            threads = [threading.Thread(target=lambda: results.append(ensure_models())) for _ in range(4)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()

        self.assertEqual(len(calls), 1)
        self.assertEqual(len({id(r) for r in results}), 1)

    def test_failure_is_recorded(self):
        factory = mock.Mock(side_effect=RuntimeError("no weights"))
        with mock.patch.dict(model_loader.BACKENDS, {"insightface": factory}):
            with self.assertRaises(RuntimeError):
                ensure_models()
        self.assertEqual(model_state(), ModelState.FAILED)
        self.assertEqual(model_loader.MODEL_BUNDLE.error, "no weights")

    @override_settings(FACE_BACKEND="nope")
    def test_unknown_backend(self):
        with self.assertRaises(ValueError):
            ensure_models()


class InsightFallbackTest(SimpleTestCase):
    @override_settings(WEIGHTS_DIR=Path("/local/weights"), MODEL_FALLBACK_ROOT=Path("/remote/store"))
    def test_falls_back_to_model_store(self):
        engine = object()
        roots = []

        def fake_engine(cfg):
            roots.append(Path(cfg.weights_root))
            if len(roots) == 1:
                raise RuntimeError("bundle missing")
            return engine

        with mock.patch("recognition.services.insight_engine.InsightEngine", side_effect=fake_engine), \
             mock.patch("recognition.services.insight_engine.cuda_available", return_value=False):
            self.assertIs(model_loader._insight_engine(), engine)

        self.assertEqual(roots, [Path("/local/weights"), Path("/remote/store")])
