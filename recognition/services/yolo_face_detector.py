# recognition/services/yolo_face_detector.py
from __future__ import annotations

import logging
from typing import List

import numpy as np
import torch
from ultralytics import YOLO

from .face_utils import DetectedFace, clip_bbox, eyes_from_kps

logger = logging.getLogger("app")


class YoloFaceDetector:
    """YOLO face (ultralytics). Если чекпойнт pose-типа, берём и 5 ключевых точек."""

    def __init__(self, weights_path: str, device: str = "auto", conf_th: float = 0.5):
        self.model = YOLO(weights_path)
        chosen = device if device != "auto" else ("cuda" if torch.cuda.is_available() else "cpu")

        if not self._try_device(chosen):
            logger.info("Falling back to CPU for YOLO due to CUDA/cuDNN issue")
            self.model.to("cpu")
            chosen = "cpu"

        self.conf_th = conf_th
        self.device = chosen
        logger.info(f"YOLO loaded: {weights_path} on {chosen}")

    def _try_device(self, dev: str) -> bool:
        try:
            self.model.to(dev)
            dummy = np.zeros((64, 64, 3), dtype=np.uint8)
            _ = self.model.predict(dummy, conf=0.9, verbose=False)
            return True
        except Exception as e:
            logger.error(f"YOLO warmup failed on {dev}: {e}")
            return False

    def detect_faces(self, img_bgr: np.ndarray) -> List[DetectedFace]:
        h, w = img_bgr.shape[:2]
        res = self.model.predict(img_bgr, conf=self.conf_th, verbose=False)[0]
        if res.boxes is None or len(res.boxes) == 0:
            logger.info("YOLO: no faces")
            return []

        xyxy = res.boxes.xyxy.cpu().numpy()
        confs = res.boxes.conf.cpu().numpy().tolist()
        keypoints = getattr(res, "keypoints", None)
        kps_all = keypoints.xy.cpu().numpy() if keypoints is not None else None

        faces = []
        for i, (box, conf) in enumerate(zip(xyxy, confs)):
            left, right = eyes_from_kps(kps_all[i]) if kps_all is not None else (None, None)
            faces.append(DetectedFace(
                bbox=clip_bbox(box, w, h),
                score=float(conf),
                left_eye=left,
                right_eye=right,
                has_landmarks=kps_all is not None,
            ))
        return faces
