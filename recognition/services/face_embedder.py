# recognition/services/face_embedder.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

import cv2
import numpy as np
import onnxruntime as ort

from .face_utils import DetectedFace, crop_face, l2_normalize

logger = logging.getLogger("app")


def _preprocess_arcface(img_bgr: np.ndarray, size: int = 112) -> np.ndarray:
    """BGR->RGB, resize, (x-127.5)/128, NCHW."""
    img = cv2.cvtColor(img_bgr, cv2.COLOR_BGR2RGB)
    img = cv2.resize(img, (size, size), interpolation=cv2.INTER_LINEAR)
    img = (img.astype(np.float32) - 127.5) / 128.0
    return np.transpose(img, (2, 0, 1))[None, ...]


@dataclass
class FaceEmbedderConfig:
    onnx_path: str
    device: str = "cpu"  # "cuda" | "cpu"
    providers: Optional[List[str]] = None
    input_size: int = 112


class FaceEmbedder:
    """ArcFace-совместимая ONNX-модель. Вход (1,3,112,112) float32, выход L2-нормированный."""

    def __init__(self, cfg: FaceEmbedderConfig):
        if cfg.providers:
            providers = cfg.providers
        elif cfg.device == "cuda" and "CUDAExecutionProvider" in ort.get_available_providers():
            providers = ["CUDAExecutionProvider", "CPUExecutionProvider"]
        else:
            providers = ["CPUExecutionProvider"]

        self.cfg = cfg
        self.session = ort.InferenceSession(cfg.onnx_path, providers=providers)
        self.input_name = self.session.get_inputs()[0].name
        self.output_name = self.session.get_outputs()[0].name
        logger.info(f"ArcFace ONNX loaded: {cfg.onnx_path} with {self.session.get_providers()}")

    def embed(self, face_bgr: np.ndarray) -> np.ndarray:
        x = _preprocess_arcface(face_bgr, self.cfg.input_size)
        y = self.session.run([self.output_name], {self.input_name: x})[0]
        return l2_normalize(y[0])


class YoloArcFaceEngine:
    """Запасной бэкенд: детекция YOLO, дескриптор ArcFace по кропу лица."""

    name = "yolo"

    def __init__(self, detector, embedder: FaceEmbedder):
        self.detector = detector
        self.embedder = embedder

    def detect(self, img_bgr: np.ndarray) -> List[DetectedFace]:
        faces = self.detector.detect_faces(img_bgr)
        for face in faces:
            face.embedding = self.embedder.embed(crop_face(img_bgr, face.bbox))
        return faces
