"""Ordered in-memory collection of captured frames."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .errors import DuplicateFrameError
from .models import CapturedFrame

logger = logging.getLogger(__name__)

__all__ = ["FrameStore"]


class FrameStore:
    """
    Newest-first frame collection.

    A manual capture is prepended on its own; a capture run's batch is prepended as one block
    that keeps its chronological order, so the latest run leads and the oldest capture trails.
    Ids are unique: inserting a frame whose id is already stored raises
    :class:`DuplicateFrameError` and leaves the store unchanged.
    """

    def __init__(self) -> None:
        self._frames: List[CapturedFrame] = []
        self._by_id: Dict[str, CapturedFrame] = {}

    def _check_new(self, frames: Iterable[CapturedFrame]) -> None:
        seen: set[str] = set()
        for frame in frames:
            if frame.id in self._by_id or frame.id in seen:
                raise DuplicateFrameError(f"Frame id {frame.id!r} is already stored")
            seen.add(frame.id)

    def insert_one(self, frame: CapturedFrame) -> None:
        self._check_new((frame,))
        self._frames.insert(0, frame)
        self._by_id[frame.id] = frame

    def insert_batch(self, frames: Iterable[CapturedFrame]) -> None:
        """Prepend *frames* (chronological order) ahead of everything already stored."""

        batch = list(frames)
        if not batch:
            return
        self._check_new(batch)
        self._frames[:0] = batch
        for frame in batch:
            self._by_id[frame.id] = frame
        logger.debug("Stored batch of %d frames (%d total)", len(batch), len(self._frames))

    def remove(self, frame_id: str) -> bool:
        """Delete the frame with *frame_id*; return ``False`` when it was not stored."""

        frame = self._by_id.pop(frame_id, None)
        if frame is None:
            return False
        self._frames = [entry for entry in self._frames if entry.id != frame_id]
        return True

    def clear(self) -> None:
        self._frames.clear()
        self._by_id.clear()

    def frames(self) -> Tuple[CapturedFrame, ...]:
        return tuple(self._frames)

    def get(self, frame_id: str) -> Optional[CapturedFrame]:
        return self._by_id.get(frame_id)

    def __len__(self) -> int:
        return len(self._frames)

    def __iter__(self) -> Iterator[CapturedFrame]:
        return iter(tuple(self._frames))

    def __contains__(self, frame_id: object) -> bool:
        return frame_id in self._by_id
