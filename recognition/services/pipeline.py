# recognition/services/pipeline.py
"""
Полный пайплайн одного снимка:
  декодирование -> валидация -> дескриптор -> поиск по профилям -> результат.

Тяжёлая часть (детекция, landmarks, дескриптор) делегирована бэкенду из model_loader;
здесь только правила отбраковки и сборка результата.
"""
from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
from django.conf import settings

from recognition.profiles import Profile
from .face_utils import DetectedFace, eyes_detected
from .matcher import MatchResult, match
from .quality import blur_variance

logger = logging.getLogger("app")

MSG_VALID = "Image is valid"
MSG_TOO_SMALL = "Image resolution too low."
MSG_TOO_LARGE = "Image resolution too high."
MSG_NO_FACE = "No face detected."
MSG_MANY_FACES = "Multiple faces detected."
MSG_NO_EYES = "Eyes not detected."
MSG_BLURRY = "Image too blurry."
MSG_LOW_SCORE = "Face detection confidence too low."
MSG_NO_EMBEDDING = "Could not generate face embedding."
MSG_NOT_FOUND = "User Not Found"
MSG_UNREADABLE = "Could not read image."
MSG_FAILED = "Processing failed. Please try again."

# (ключ, заголовок, описание, прогресс %)
STEPS: Tuple[Tuple[str, str, str, int], ...] = (
    ("analyze", "Analyzing Eye Features", "Extracting iris patterns and pupil characteristics", 25),
    ("ai", "AI Processing", "Deep learning analysis of unique eye markers", 50),
    ("search", "Database Search", "Comparing against stored profiles", 75),
    ("verify", "Verification", "Validating match accuracy and confidence", 100),
)


@dataclass
class PipelineConfig:
    min_side: int = 100
    max_side: int = 2000
    blur_threshold: float = 100.0
    min_detection_score: float = 0.7
    match_threshold: float = 0.5

    @classmethod
    def from_settings(cls) -> "PipelineConfig":
        return cls(
            min_side=int(getattr(settings, "MIN_IMAGE_SIDE", 100)),
            max_side=int(getattr(settings, "MAX_IMAGE_SIDE", 2000)),
            blur_threshold=float(getattr(settings, "BLUR_THRESHOLD", 100.0)),
            min_detection_score=float(getattr(settings, "MIN_DETECTION_CONFIDENCE", 0.7)),
            match_threshold=float(getattr(settings, "FACE_MATCH_THRESHOLD", 0.5)),
        )


@dataclass
class ValidationResult:
    is_valid: bool
    message: str
    face: Optional[DetectedFace] = None


@dataclass
class ProfileMatch:
    """То, что показывает экран результатов."""
    id: str
    name: str
    age: int
    occupation: str
    location: str
    confidence: int  # проценты 0..100
    last_seen: str
    profile_image: str
    verified: bool
    distance: float

    @property
    def display_id(self) -> str:
        return self.id.zfill(6)

    @property
    def confidence_level(self) -> str:
        if self.confidence >= 90:
            return "high"
        if self.confidence >= 75:
            return "medium"
        return "low"

    @property
    def confidence_label(self) -> str:
        return {
            "high": "Excellent match - Very high confidence",
            "medium": "Good match - High confidence",
        }.get(self.confidence_level, "Possible match - Moderate confidence")

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ProfileMatch":
        return cls(**payload)

    @classmethod
    def from_profile(cls, profile: Profile, result: MatchResult) -> "ProfileMatch":
        return cls(
            id=profile.id,
            name=profile.name,
            age=profile.age,
            occupation=profile.occupation,
            location=profile.location,
            confidence=result.confidence_percent,
            last_seen=profile.last_seen,
            profile_image=profile.profile_image,
            verified=profile.verified,
            distance=round(float(result.distance), 4),
        )


@dataclass
class PipelineOutcome:
    message: str
    match: Optional[ProfileMatch] = None
    distance: Optional[float] = None
    confidence: Optional[float] = None
    steps_done: List[str] = field(default_factory=list)
    elapsed_ms: float = 0.0
    face: Optional[DetectedFace] = field(default=None, repr=False)

    @property
    def matched(self) -> bool:
        return self.match is not None

    @property
    def progress(self) -> int:
        done = set(self.steps_done)
        return max([p for key, _, _, p in STEPS if key in done], default=0)

    def as_session(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "match": self.match.as_dict() if self.match else None,
            "distance": self.distance,
            "confidence": self.confidence,
            "steps_done": list(self.steps_done),
            "elapsed_ms": round(self.elapsed_ms, 1),
        }

    @classmethod
    def from_session(cls, payload: Dict[str, Any]) -> "PipelineOutcome":
        m = payload.get("match")
        return cls(
            message=payload.get("message", ""),
            match=ProfileMatch.from_dict(m) if m else None,
            distance=payload.get("distance"),
            confidence=payload.get("confidence"),
            steps_done=list(payload.get("steps_done", [])),
            elapsed_ms=float(payload.get("elapsed_ms", 0.0)),
        )


# ===================== Этапы =====================

def validate_image(img_bgr: np.ndarray, faces: List[DetectedFace], cfg: PipelineConfig) -> ValidationResult:
    """Отбраковка снимка. Порядок проверок фиксирован: разрешение, лица, глаза, резкость, score."""
    h, w = img_bgr.shape[:2]
    if w < cfg.min_side or h < cfg.min_side:
        return ValidationResult(False, MSG_TOO_SMALL)
    if w > cfg.max_side or h > cfg.max_side:
        return ValidationResult(False, MSG_TOO_LARGE)

    if not faces:
        return ValidationResult(False, MSG_NO_FACE)
    if len(faces) > 1:
        return ValidationResult(False, MSG_MANY_FACES)

    face = faces[0]
    if face.has_landmarks and not eyes_detected(face):
        return ValidationResult(False, MSG_NO_EYES)

    blur = blur_variance(img_bgr)
    if blur < cfg.blur_threshold:
        logger.info("validate: blur=%.1f < %.1f", blur, cfg.blur_threshold)
        return ValidationResult(False, MSG_BLURRY)

    if face.score < cfg.min_detection_score:
        return ValidationResult(False, MSG_LOW_SCORE)

    return ValidationResult(True, MSG_VALID, face=face)


def check_image(img_bgr: np.ndarray, analyzer, cfg: Optional[PipelineConfig] = None) -> ValidationResult:
    """Валидация с детекцией. Детектор не запускаем, если разрешение уже не подходит."""
    cfg = cfg or PipelineConfig.from_settings()
    h, w = img_bgr.shape[:2]
    if min(h, w) < cfg.min_side or max(h, w) > cfg.max_side:
        return validate_image(img_bgr, [], cfg)
    return validate_image(img_bgr, analyzer.detect(img_bgr), cfg)


def run_pipeline(img_bgr: np.ndarray, analyzer, index, cfg: Optional[PipelineConfig] = None) -> PipelineOutcome:
    cfg = cfg or PipelineConfig.from_settings()
    t0 = time.perf_counter()
    outcome = PipelineOutcome(message="")

    def _finish(message: str) -> PipelineOutcome:
        outcome.message = message
        outcome.elapsed_ms = (time.perf_counter() - t0) * 1000.0
        logger.info("pipeline: %s | steps=%s (%.1f ms)", message, outcome.steps_done, outcome.elapsed_ms)
        return outcome

    # 1) анализ снимка
    outcome.steps_done.append("analyze")

    # 2) детекция + валидация
    validation = check_image(img_bgr, analyzer, cfg)
    outcome.steps_done.append("ai")
    if not validation.is_valid:
        return _finish(validation.message)

    # 3) дескриптор и поиск по профилям
    face = validation.face
    outcome.face = face
    if face is None or face.embedding is None:
        return _finish(MSG_NO_EMBEDDING)

    references = index.entries(analyzer)
    result = match(face.embedding, references, threshold=cfg.match_threshold)
    outcome.steps_done.append("search")
    if np.isfinite(result.distance):
        outcome.distance = float(result.distance)
    outcome.confidence = float(result.confidence)

    # 4) решение
    outcome.steps_done.append("verify")
    profile = index.profile(result.label) if result.matched else None
    if profile is None:
        return _finish(MSG_NOT_FOUND)

    outcome.match = ProfileMatch.from_profile(profile, result)
    return _finish(f"Match found: {profile.name}")
