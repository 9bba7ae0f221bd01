# recognition/profiles.py
"""Демо-профили. Это не хранилище данных: список зашит в код."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class Profile:
    id: str
    name: str
    age: int
    occupation: str
    location: str
    profile_image: str
    eye_image: str
    last_seen: str
    verified: bool

    @property
    def image_sources(self) -> Tuple[str, ...]:
        # Одинаковые источники дают одинаковые дескрипторы, считаем один раз
        return tuple(dict.fromkeys(s for s in (self.profile_image, self.eye_image) if s))

    @property
    def remote_image(self) -> bool:
        return self.profile_image.startswith(("http://", "https://"))


MOCK_PROFILES: List[Profile] = [
    Profile(
        id="001",
        name="Sarah Johnson",
        age=28,
        occupation="Software Engineer",
        location="San Francisco, CA",
        profile_image="check.webp",
        eye_image="check.webp",
        last_seen="2024-01-15",
        verified=True,
    ),
    Profile(
        id="002",
        name="Michael Chen",
        age=35,
        occupation="Data Scientist",
        location="Seattle, WA",
        profile_image="modi.jpg",
        eye_image="https://images.pexels.com/photos/1108099/pexels-photo-1108099.jpeg",
        last_seen="2024-01-20",
        verified=True,
    ),
]


def get_profile(profile_id: str, profiles: Optional[List[Profile]] = None) -> Optional[Profile]:
    for p in profiles if profiles is not None else MOCK_PROFILES:
        if p.id == profile_id:
            return p
    return None
