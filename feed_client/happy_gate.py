from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Iterable, Optional

from feed_client.settings import HAPPINESS_THRESHOLD


log = logging.getLogger("feed_client.happy_gate")

REJECTION_MESSAGE = "I can't find any happy Xamarin developers in this picture. Please try again."


def _lookup(obj: Any, *names: str) -> Any:
    for name in names:
        if obj is None:
            return None
        if isinstance(obj, dict):
            obj = obj.get(name)
        else:
            obj = getattr(obj, name, None)
    return obj


def face_happiness(face: Any) -> Optional[float]:
    """Happiness score from a detected face, dict (Face API JSON) or attribute style."""
    value = _lookup(face, "faceAttributes", "emotion", "happiness")
    if value is None:
        value = _lookup(face, "face_attributes", "emotion", "happiness")
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def is_happy(faces: Iterable[Any], threshold: float = HAPPINESS_THRESHOLD) -> bool:
    faces = list(faces or [])
    if not faces:
        return False
    for face in faces:
        score = face_happiness(face)
        if score is None or score <= threshold:
            return False
    return True


class UploadPipeline:
    """Gate a photo on the face-detection verdict before handing it to the uploader."""

    def __init__(
        self,
        detector: Callable[[Any], Awaitable[Iterable[Any]]],
        uploader: Callable[[Any], Awaitable[Any]],
        on_rejected: Optional[Callable[[str], Any]] = None,
        threshold: float | None = None,
    ) -> None:
        self.detector = detector
        self.uploader = uploader
        self.on_rejected = on_rejected
        self.threshold = HAPPINESS_THRESHOLD if threshold is None else float(threshold)

    async def submit(self, photo: Any) -> bool:
        if photo is None:
            # capture or pick was cancelled
            return False

        faces = await self.detector(photo)
        if not is_happy(faces, self.threshold):
            log.info("Photo rejected by happy-face gate (threshold=%s)", self.threshold)
            if self.on_rejected is not None:
                self.on_rejected(REJECTION_MESSAGE)
            return False

        await self.uploader(photo)
        log.info("Photo uploaded")
        return True
