# recognition/services/profile_index.py
from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional, Sequence

import numpy as np
from django.conf import settings

from recognition.profiles import MOCK_PROFILES, Profile
from .face_utils import pick_best_face
from .image_io import load_image_source
from .matcher import LabeledEmbeddings

logger = logging.getLogger("app")

ImageLoader = Callable[[str], np.ndarray]


def extract_embedding(img_bgr: np.ndarray, analyzer) -> Optional[np.ndarray]:
    """Дескриптор лучшего лица на снимке (без валидации качества)."""
    face = pick_best_face(analyzer.detect(img_bgr))
    if face is None or face.embedding is None:
        return None
    return np.asarray(face.embedding, dtype=np.float32)


def _default_loader() -> ImageLoader:
    base_dir = Path(getattr(settings, "PROFILE_IMAGES_DIR", "profiles"))
    timeout = int(getattr(settings, "PROFILE_FETCH_TIMEOUT", 20))
    return lambda source: load_image_source(source, base_dir, timeout=timeout)


def build_profile_embeddings(
    analyzer,
    profiles: Sequence[Profile] = MOCK_PROFILES,
    loader: Optional[ImageLoader] = None,
) -> List[LabeledEmbeddings]:
    loader = loader or _default_loader()
    entries: List[LabeledEmbeddings] = []
    for profile in profiles:
        descriptors = []
        for source in profile.image_sources:
            try:
                img = loader(source)
                desc = extract_embedding(img, analyzer)
            except Exception as e:
                logger.warning("Could not extract embedding for %s (%s): %s", profile.name, source, e)
                continue
            if desc is None:
                logger.warning("No face in profile image for %s (%s)", profile.name, source)
                continue
            descriptors.append(desc)

        if descriptors:
            entries.append(LabeledEmbeddings(label=profile.id, descriptors=descriptors))
        else:
            logger.warning("Skipping profile %s: no embeddings", profile.id)
    return entries


# ===================== Кэш на диске (.npz) =====================

def save_npz(path: Path, entries: Sequence[LabeledEmbeddings]) -> None:
    labels = [e.label for e in entries for _ in e.descriptors]
    vectors = [d for e in entries for d in e.descriptors]
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    matrix = np.stack(vectors).astype(np.float32) if vectors else np.zeros((0, 0), np.float32)
    with path.open("wb") as f:
        np.savez(f, labels=np.array(labels, dtype=str), vectors=matrix)


def load_npz(path: Path) -> List[LabeledEmbeddings]:
    with np.load(str(path), allow_pickle=False) as data:
        labels = data["labels"].tolist()
        vectors = data["vectors"]
    entries: List[LabeledEmbeddings] = []
    by_label = {}
    for label, vec in zip(labels, vectors):
        entry = by_label.get(label)
        if entry is None:
            entry = by_label[label] = LabeledEmbeddings(label=label)
            entries.append(entry)
        entry.descriptors.append(np.asarray(vec, dtype=np.float32))
    return entries


# ===================== Индекс профилей =====================

class ProfileIndex:
    """Эмбеддинги демо-профилей, считаются один раз на процесс."""

    def __init__(self, profiles: Sequence[Profile] = MOCK_PROFILES, cache_path: Optional[Path] = None):
        self.profiles = list(profiles)
        self.cache_path = cache_path
        self._entries: Optional[List[LabeledEmbeddings]] = None
        self._lock = threading.Lock()

    @property
    def built(self) -> bool:
        return self._entries is not None

    def __len__(self) -> int:
        return len(self._entries or [])

    def set_entries(self, entries: Sequence[LabeledEmbeddings]) -> None:
        self._entries = list(entries)

    def entries(self, analyzer) -> List[LabeledEmbeddings]:
        """Пустой результат не запоминаем: профили могли быть недоступны (сеть, файлы)."""
        if self._entries is not None:
            return self._entries
        with self._lock:
            if self._entries is not None:
                return self._entries
            entries = self._load_or_build(analyzer)
            if entries:
                self._entries = entries
            else:
                logger.warning("Profile index is empty, will rebuild on next request")
            return entries

    def _load_or_build(self, analyzer) -> List[LabeledEmbeddings]:
        if self.cache_path and Path(self.cache_path).is_file():
            try:
                entries = load_npz(self.cache_path)
                logger.info("Profile embeddings loaded from %s: %d profiles", self.cache_path, len(entries))
                return entries
            except Exception as e:
                logger.warning("Profile cache %s unreadable, rebuilding: %s", self.cache_path, e)

        t0 = time.perf_counter()
        entries = build_profile_embeddings(analyzer, self.profiles)
        logger.info(
            "Profile embeddings built: %d/%d profiles (%.1f ms)",
            len(entries), len(self.profiles), (time.perf_counter() - t0) * 1000.0,
        )
        return entries

    def profile(self, label: str) -> Optional[Profile]:
        return next((p for p in self.profiles if p.id == label), None)


_INDEX: Optional[ProfileIndex] = None
_INDEX_LOCK = threading.Lock()


def get_profile_index() -> ProfileIndex:
    global _INDEX
    if _INDEX is None:
        with _INDEX_LOCK:
            if _INDEX is None:
                cache = getattr(settings, "PROFILE_EMBEDDINGS_CACHE", None)
                _INDEX = ProfileIndex(MOCK_PROFILES, cache_path=Path(cache) if cache else None)
    return _INDEX
