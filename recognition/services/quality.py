# recognition/services/quality.py
from __future__ import annotations

import cv2
import numpy as np

# Классическое 4-связное ядро Лапласа
LAPLACIAN_KERNEL = np.array([[0, 1, 0], [1, -4, 1], [0, 1, 0]], dtype=np.float32)


def to_gray(img_bgr: np.ndarray) -> np.ndarray:
    """Яркость по ITU-R 601: 0.299R + 0.587G + 0.114B (float32)."""
    if img_bgr.ndim == 2:
        return img_bgr.astype(np.float32)
    b, g, r = (img_bgr[..., i].astype(np.float32) for i in range(3))
    return 0.299 * r + 0.587 * g + 0.114 * b


def blur_variance(img_bgr: np.ndarray) -> float:
    """Дисперсия отклика Лапласа: чем меньше, тем мутнее снимок.

    Краевые пиксели не считаются (отклик там 0), среднее и дисперсия берутся по всему кадру.
    """
    gray = to_gray(img_bgr)
    h, w = gray.shape[:2]
    lap = np.zeros_like(gray)
    if h >= 3 and w >= 3:
        full = cv2.filter2D(gray, cv2.CV_32F, LAPLACIAN_KERNEL, borderType=cv2.BORDER_CONSTANT)
        lap[1:-1, 1:-1] = full[1:-1, 1:-1]
    return float(lap.astype(np.float64).var())


def image_quality_metrics(img) -> dict:
    """Лёгкая диагностика для логов: форма, средняя яркость, резкость."""
    if img is None:
        return {"shape": None, "mean": None, "blur": None}
    return {"shape": list(img.shape), "mean": float(np.mean(img)), "blur": blur_variance(img)}
