# recognition/services/insight_engine.py
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple

import numpy as np
import onnxruntime as ort
from insightface.app import FaceAnalysis

from .face_utils import DetectedFace, eyes_from_kps, l2_normalize

logger = logging.getLogger("app")


# ===================== Конфиг движка =====================

@dataclass
class InsightConfig:
    weights_root: Path
    bundle: str = "buffalo_l"
    use_gpu: bool = False
    det_size: Tuple[int, int] = (640, 640)
    det_thresh: float = 0.50
    modules: Tuple[str, ...] = ("detection", "recognition")


def _providers(use_gpu: bool) -> List[str]:
    avail = set(ort.get_available_providers())
    if use_gpu and "CUDAExecutionProvider" in avail:
        return ["CUDAExecutionProvider", "CPUExecutionProvider"]
    return ["CPUExecutionProvider"]


def cuda_available() -> bool:
    return "CUDAExecutionProvider" in set(ort.get_available_providers())


def to_detected_face(face) -> DetectedFace:
    """insightface.app.common.Face -> DetectedFace."""
    x1, y1, x2, y2 = (int(round(v)) for v in np.asarray(face.bbox).tolist()[:4])
    kps = getattr(face, "kps", None)
    left, right = eyes_from_kps(kps)

    emb = getattr(face, "normed_embedding", None)
    if emb is None and getattr(face, "embedding", None) is not None:
        emb = l2_normalize(face.embedding)

    return DetectedFace(
        bbox=(x1, y1, x2, y2),
        score=float(getattr(face, "det_score", 0.0)),
        left_eye=left,
        right_eye=right,
        embedding=None if emb is None else np.asarray(emb, dtype=np.float32),
        has_landmarks=kps is not None,
    )


# ===================== Движок =====================

class InsightEngine:
    """SCRFD (детектор + 5 точек) и ArcFace из одного бандла insightface."""

    name = "insightface"

    def __init__(self, cfg: InsightConfig):
        self.cfg = cfg
        prov = _providers(cfg.use_gpu)
        ctx_id = 0 if "CUDAExecutionProvider" in prov else -1

        t0 = time.perf_counter()
        self.app = FaceAnalysis(
            name=cfg.bundle,
            root=str(cfg.weights_root),
            providers=prov,
            allowed_modules=list(cfg.modules),
        )
        self.app.prepare(ctx_id=ctx_id, det_size=cfg.det_size, det_thresh=cfg.det_thresh)

        # Тёплый старт: один вызов на пустом кадре, чтобы догрузить ядра
        try:
            dummy = np.zeros((480, 640, 3), np.uint8)
            _ = self.app.get(dummy)
        except Exception as e:
            logger.warning("Insight warm-up failed: %s", e)

        logger.info(
            "InsightEngine ready: bundle=%s root=%s providers=%s det=%s (init %.1f ms)",
            cfg.bundle, cfg.weights_root, prov, cfg.det_size, (time.perf_counter() - t0) * 1000.0,
        )

    def detect(self, img_bgr: np.ndarray) -> List[DetectedFace]:
        t0 = time.perf_counter()
        faces = self.app.get(img_bgr) or []
        out = [to_detected_face(f) for f in faces]
        logger.info("insight detect+embed: faces=%d (%.1f ms)", len(out), (time.perf_counter() - t0) * 1000.0)
        return out
