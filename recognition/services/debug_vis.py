# recognition/services/debug_vis.py
from __future__ import annotations

import cv2
import numpy as np

from .face_utils import DetectedFace


def draw_face(img: np.ndarray, face: DetectedFace, color=(0, 255, 0), text: str | None = None) -> np.ndarray:
    """Бокс лица, точки глаз и подпись (для дампа в media/crops)."""
    out = img.copy()
    x1, y1, x2, y2 = face.bbox
    cv2.rectangle(out, (x1, y1), (x2, y2), color, 2)
    for eye in (face.left_eye, face.right_eye):
        if eye is not None:
            cv2.circle(out, (int(eye[0]), int(eye[1])), 3, (255, 0, 0), -1, cv2.LINE_AA)
    if text:
        cv2.putText(out, text, (x1, max(0, y1 - 8)), cv2.FONT_HERSHEY_SIMPLEX, 0.5, color, 1, cv2.LINE_AA)
    return out
