# recognition/services/face_utils.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

Point = Tuple[float, float]


@dataclass
class DetectedFace:
    """Лицо, найденное бэкендом: бокс, уверенность детектора, глаза и дескриптор."""
    bbox: Tuple[int, int, int, int]
    score: float
    left_eye: Optional[Point] = None
    right_eye: Optional[Point] = None
    embedding: Optional[np.ndarray] = None
    has_landmarks: bool = True

    @property
    def area(self) -> int:
        x1, y1, x2, y2 = self.bbox
        return max(0, x2 - x1) * max(0, y2 - y1)


def eyes_from_kps(kps) -> Tuple[Optional[Point], Optional[Point]]:
    """5-точечные landmarks (SCRFD/YOLO-face): [левый глаз, правый глаз, нос, рот_л, рот_п]."""
    if kps is None:
        return None, None
    pts = np.asarray(kps, dtype=np.float32).reshape(-1, 2)
    if len(pts) < 2:
        return None, None

    def _point(p) -> Optional[Point]:
        if not np.all(np.isfinite(p)) or (p[0] <= 0 and p[1] <= 0):
            return None
        return float(p[0]), float(p[1])

    return _point(pts[0]), _point(pts[1])


def eyes_detected(face: DetectedFace) -> bool:
    return face.left_eye is not None or face.right_eye is not None


def pick_best_face(faces: Sequence[DetectedFace]) -> Optional[DetectedFace]:
    if not faces:
        return None
    # побольше бокс + повыше score
    return max(faces, key=lambda f: (f.area, f.score))


def clip_bbox(bbox, width: int, height: int) -> Tuple[int, int, int, int]:
    x1, y1, x2, y2 = (int(v) for v in bbox)
    return max(0, x1), max(0, y1), min(width - 1, x2), min(height - 1, y2)


def crop_face(img: np.ndarray, bbox: Tuple[int, int, int, int]) -> np.ndarray:
    h, w = img.shape[:2]
    x1, y1, x2, y2 = clip_bbox(bbox, w, h)
    if x2 <= x1 or y2 <= y1:
        return img.copy()
    return img[y1:y2, x1:x2].copy()


def l2_normalize(vec: np.ndarray) -> np.ndarray:
    vec = np.asarray(vec, dtype=np.float32).reshape(-1)
    return vec / (np.linalg.norm(vec) + 1e-12)
