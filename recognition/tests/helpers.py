# recognition/tests/helpers.py
import cv2
import numpy as np

from recognition.services.face_utils import DetectedFace


def checkerboard(size=(200, 200), cell=10) -> np.ndarray:
    """Резкий BGR-кадр: дисперсия Лапласа заведомо выше порога размытия."""
    w, h = size
    ys, xs = np.indices((h, w))
    board = (((xs // cell) + (ys // cell)) % 2 * 255).astype(np.uint8)
    return cv2.cvtColor(board, cv2.COLOR_GRAY2BGR)


def flat(size=(200, 200), value=128) -> np.ndarray:
    w, h = size
    return np.full((h, w, 3), value, dtype=np.uint8)


def png_bytes(img: np.ndarray) -> bytes:
    ok, buf = cv2.imencode(".png", img)
    assert ok
    return buf.tobytes()


def unit(dim: int, i: int) -> np.ndarray:
    v = np.zeros(dim, dtype=np.float32)
    v[i] = 1.0
    return v


def make_face(score=0.95, eyes=True, embedding=None, bbox=(40, 40, 160, 160), has_landmarks=True) -> DetectedFace:
    return DetectedFace(
        bbox=bbox,
        score=score,
        left_eye=(70.0, 80.0) if eyes else None,
        right_eye=(130.0, 80.0) if eyes else None,
        embedding=embedding,
        has_landmarks=has_landmarks,
    )


class FakeAnalyzer:
    name = "fake"

    def __init__(self, faces=None):
        self.faces = list(faces or [])
        self.calls = 0

    def detect(self, img_bgr):
        self.calls += 1
        return list(self.faces)


class FakeSession(dict):
    modified = False
