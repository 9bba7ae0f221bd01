# recognition/services/model_loader.py
"""
Загрузка моделей один раз на процесс.

По умолчанию InsightFace (SCRFD + ArcFace) через ONNXRuntime: сначала из локального
хранилища весов (WEIGHTS_DIR), при ошибке из MODEL_FALLBACK_ROOT, куда insightface сам
докачивает бандл. Бэкенд "yolo": YOLO face + ArcFace (onnx).
"""
from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol

import numpy as np
from django.conf import settings

from .face_utils import DetectedFace

logger = logging.getLogger("app")


class FaceAnalyzer(Protocol):
    name: str

    def detect(self, img_bgr: np.ndarray) -> List[DetectedFace]: ...


class ModelState(str, enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass
class ModelBundle:
    analyzer: Optional[FaceAnalyzer] = None
    state: ModelState = ModelState.IDLE
    error: Optional[str] = None


MODEL_BUNDLE = ModelBundle()
_LOCK = threading.Lock()


def _insight_engine():
    from .insight_engine import InsightConfig, InsightEngine, cuda_available

    cuda_ok = cuda_available()
    cfg = InsightConfig(
        weights_root=Path(getattr(settings, "WEIGHTS_DIR", "weights")),
        bundle=getattr(settings, "INSIGHT_BUNDLE", "buffalo_l"),
        use_gpu=cuda_ok,
        det_size=(960, 960) if cuda_ok else (640, 640),
        det_thresh=float(getattr(settings, "DETECTION_SCORE_THRESHOLD", 0.5)),
    )
    try:
        return InsightEngine(cfg)
    except Exception as e:
        fallback = Path(getattr(settings, "MODEL_FALLBACK_ROOT", Path.home() / ".insightface"))
        logger.warning("Local model load failed (%s): %s. Trying model store at %s", cfg.weights_root, e, fallback)
        cfg.weights_root = fallback
        return InsightEngine(cfg)


def _yolo_engine():
    from .face_embedder import FaceEmbedder, FaceEmbedderConfig, YoloArcFaceEngine
    from .yolo_face_detector import YoloFaceDetector

    weights = getattr(settings, "YOLO_WEIGHTS", "weights/yolo11n-face.pt")
    device = getattr(settings, "DEVICE", "cpu")
    conf = float(getattr(settings, "DETECTION_SCORE_THRESHOLD", 0.5))
    try:
        detector = YoloFaceDetector(weights_path=weights, device=device, conf_th=conf)
    except Exception as e:
        logger.error("YOLO init failed on %s: %s. Re-init on CPU.", device, e)
        detector = YoloFaceDetector(weights_path=weights, device="cpu", conf_th=conf)

    embedder = FaceEmbedder(FaceEmbedderConfig(
        onnx_path=getattr(settings, "ARCFACE_ONNX", "weights/glintr100.onnx"),
        device=device,
    ))
    return YoloArcFaceEngine(detector, embedder)


BACKENDS = {
    "insightface": _insight_engine,
    "yolo": _yolo_engine,
}


def ensure_models() -> FaceAnalyzer:
    """Инициализируем бэкенд один раз; параллельные вызовы ждут ту же загрузку."""
    analyzer = MODEL_BUNDLE.analyzer
    if analyzer is not None:
        return analyzer

    with _LOCK:
        if MODEL_BUNDLE.analyzer is not None:
            return MODEL_BUNDLE.analyzer

        backend = getattr(settings, "FACE_BACKEND", "insightface")
        factory = BACKENDS.get(backend)
        if factory is None:
            raise ValueError(f"Unknown face backend '{backend}'. Allowed: {', '.join(BACKENDS)}")

        MODEL_BUNDLE.state = ModelState.LOADING
        MODEL_BUNDLE.error = None
        try:
            analyzer = factory()
        except Exception as e:
            MODEL_BUNDLE.state = ModelState.FAILED
            MODEL_BUNDLE.error = str(e)
            logger.error("Model load failed (backend=%s): %s", backend, e)
            raise

        MODEL_BUNDLE.analyzer = analyzer
        MODEL_BUNDLE.state = ModelState.READY
        logger.info("Face models ready: backend=%s", backend)
        return analyzer


def model_state() -> ModelState:
    return MODEL_BUNDLE.state


def models_loading() -> bool:
    return MODEL_BUNDLE.state == ModelState.LOADING


def reset_models() -> None:
    with _LOCK:
        MODEL_BUNDLE.analyzer = None
        MODEL_BUNDLE.state = ModelState.IDLE
        MODEL_BUNDLE.error = None
