from __future__ import annotations

import asyncio

import pytest

from src.frame_extract.errors import CaptureError, DuplicateFrameError
from src.frame_extract.models import CaptureProgress, CaptureRange, CapturedFrame
from src.frame_extract.scheduler import (
    CancelToken,
    CaptureScheduler,
    capture_current_frame,
    estimate_sample_count,
    progress_percent,
    sample_points,
)
from src.frame_extract.store import FrameStore
from tests.helpers.fake_source import FakeVideoSource


@pytest.mark.parametrize(
    ("start", "end", "interval", "expected"),
    [(0.0, 10.0, 1.0, 11), (0.0, 1.0, 0.3, 4), (2.0, 2.0, 1.0, 1), (0.0, 9.5, 2.0, 5)],
)
def test_estimate_sample_count(start: float, end: float, interval: float, expected: int) -> None:
    capture_range = CaptureRange(start=start, end=end, interval=interval)
    assert estimate_sample_count(capture_range) == expected
    assert len(sample_points(capture_range)) == expected


def test_sample_points_start_at_range_start_and_stay_inside() -> None:
    capture_range = CaptureRange(start=1.5, end=4.0, interval=1.0)
    points = sample_points(capture_range)
    assert points == pytest.approx([1.5, 2.5, 3.5])
    assert all(capture_range.start <= point <= capture_range.end for point in points)


def test_progress_percent_stays_below_completion() -> None:
    capture_range = CaptureRange(start=0.0, end=10.0, interval=1.0)
    assert progress_percent(capture_range, 0.0) == 0.0
    assert progress_percent(capture_range, 5.0) == pytest.approx(50.0)
    assert progress_percent(capture_range, 10.0) == 99.0
    assert progress_percent(CaptureRange(start=3.0, end=3.0, interval=1.0), 3.0) == 99.0


def _run(
    source: FakeVideoSource,
    capture_range: CaptureRange,
    *,
    store: FrameStore | None = None,
    token: CancelToken | None = None,
    progress=None,
) -> list[CapturedFrame]:
    scheduler = CaptureScheduler(source, store if store is not None else FrameStore())
    return asyncio.run(scheduler.run(capture_range, token, progress=progress))


def test_run_accepts_each_changed_frame_in_chronological_order() -> None:
    source = FakeVideoSource(duration=4.0)
    store = FrameStore()
    frames = _run(source, CaptureRange(start=0.0, end=4.0, interval=1.0), store=store)

    assert [frame.timestamp for frame in frames] == [0.0, 1.0, 2.0, 3.0, 4.0]
    assert store.frames() == tuple(frames)
    assert all((frame.width, frame.height) == (64, 36) for frame in frames)


def test_run_drops_consecutive_duplicates() -> None:
    source = FakeVideoSource(duration=4.0)
    frames = _run(source, CaptureRange(start=0.0, end=4.0, interval=0.5))

    assert [frame.timestamp for frame in frames] == [0.0, 1.0, 2.0, 3.0, 4.0]


def test_identical_rasters_yield_single_frame() -> None:
    source = FakeVideoSource(duration=6.0, frame_key=lambda seconds: 7)
    frames = _run(source, CaptureRange(start=0.0, end=6.0, interval=1.0))

    assert len(frames) == 1
    assert frames[0].timestamp == 0.0


def test_returning_content_is_kept_after_a_change() -> None:
    keys = {0: 1, 1: 2, 2: 1}
    source = FakeVideoSource(duration=2.0, frame_key=lambda seconds: keys[int(seconds)])
    frames = _run(source, CaptureRange(start=0.0, end=2.0, interval=1.0))

    assert [frame.timestamp for frame in frames] == [0.0, 1.0, 2.0]


def test_timestamps_follow_where_the_decoder_landed() -> None:
    source = FakeVideoSource(duration=3.0, snap=lambda seconds: round(seconds * 24) / 24)
    frames = _run(source, CaptureRange(start=0.0, end=3.0, interval=1.01))

    assert [frame.timestamp for frame in frames] == pytest.approx([0.0, 1.0, 2.0])


def test_cancel_keeps_partial_batch_and_restores_position() -> None:
    source = FakeVideoSource(duration=9.0)
    store = FrameStore()
    token = CancelToken()
    updates: list[CaptureProgress] = []

    def _on_progress(update: CaptureProgress) -> None:
        updates.append(update)
        if len(updates) == 3:
            token.cancel()

    frames = _run(
        source,
        CaptureRange(start=2.0, end=9.0, interval=1.0),
        store=store,
        token=token,
        progress=_on_progress,
    )

    assert [frame.timestamp for frame in frames] == [2.0, 3.0, 4.0]
    assert store.frames() == tuple(frames)
    assert updates[-1].percent == 100.0
    assert updates[-1].accepted == 3
    assert source.seeks[-1] == 2.0
    assert source.current_time == 2.0


def test_cancel_before_start_captures_nothing() -> None:
    source = FakeVideoSource(duration=5.0)
    token = CancelToken()
    token.cancel()
    frames = _run(source, CaptureRange(start=0.0, end=5.0, interval=1.0), token=token)

    assert frames == []


def test_seek_failure_raises_with_partial_frames_merged() -> None:
    source = FakeVideoSource(duration=9.0, fail_seek=lambda seconds: seconds >= 5.0)
    store = FrameStore()
    updates: list[CaptureProgress] = []
    scheduler = CaptureScheduler(source, store)

    with pytest.raises(CaptureError) as excinfo:
        asyncio.run(
            scheduler.run(CaptureRange(start=0.0, end=9.0, interval=1.0), progress=updates.append)
        )

    partial = excinfo.value.frames
    assert [frame.timestamp for frame in partial] == [0.0, 1.0, 2.0, 3.0, 4.0]
    assert store.frames() == partial
    assert all(update.percent <= 99.0 for update in updates)
    assert not scheduler.running
    assert source.seeks[-1] == 0.0


def test_progress_is_monotonic_and_completes() -> None:
    source = FakeVideoSource(duration=5.0)
    updates: list[CaptureProgress] = []
    _run(source, CaptureRange(start=0.0, end=5.0, interval=0.5), progress=updates.append)

    percents = [update.percent for update in updates]
    assert percents == sorted(percents)
    assert all(percent <= 99.0 for percent in percents[:-1])
    assert percents[-1] == 100.0
    assert updates[-1].accepted == 6


def test_range_beyond_duration_is_rejected_before_capture() -> None:
    source = FakeVideoSource(duration=3.0)
    store = FrameStore()
    with pytest.raises(ValueError):
        _run(source, CaptureRange(start=0.0, end=4.0, interval=1.0), store=store)
    assert source.seeks == []
    assert len(store) == 0


def test_batch_is_prepended_ahead_of_manual_captures() -> None:
    source = FakeVideoSource(duration=2.0)
    store = FrameStore()

    async def _scenario() -> None:
        await source.seek(1.5)
        store.insert_one(capture_current_frame(source))
        await CaptureScheduler(source, store).run(CaptureRange(start=0.0, end=2.0, interval=1.0))

    asyncio.run(_scenario())
    assert [frame.timestamp for frame in store.frames()] == [0.0, 1.0, 2.0, 1.5]


def test_run_pauses_playing_source() -> None:
    source = FakeVideoSource(duration=2.0)

    async def _scenario() -> None:
        await source.play()
        await CaptureScheduler(source, FrameStore()).run(CaptureRange(start=0.0, end=2.0, interval=1.0))

    asyncio.run(_scenario())
    assert source.paused


def test_capture_current_frame_uses_native_size() -> None:
    source = FakeVideoSource(duration=2.0, size=(80, 60))
    frame = capture_current_frame(source)
    assert (frame.width, frame.height) == (80, 60)
    assert frame.timestamp == 0.0


def test_failing_completion_callback_still_restores_and_releases() -> None:
    source = FakeVideoSource(duration=3.0)
    store = FrameStore()
    scheduler = CaptureScheduler(source, store)

    def _on_progress(update: CaptureProgress) -> None:
        if update.percent == 100.0:
            raise RuntimeError("display closed")

    with pytest.raises(RuntimeError, match="display closed"):
        asyncio.run(
            scheduler.run(CaptureRange(start=1.0, end=3.0, interval=1.0), progress=_on_progress)
        )

    assert not scheduler.running
    assert source.seeks[-1] == 1.0
    assert [frame.timestamp for frame in store.frames()] == [1.0, 2.0, 3.0]

    again = asyncio.run(scheduler.run(CaptureRange(start=0.0, end=1.0, interval=1.0)))
    assert [frame.timestamp for frame in again] == [0.0, 1.0]


def test_failing_store_merge_still_restores_and_releases(monkeypatch: pytest.MonkeyPatch) -> None:
    source = FakeVideoSource(duration=2.0)
    store = FrameStore()
    scheduler = CaptureScheduler(source, store)

    def _reject(batch) -> None:
        raise DuplicateFrameError("collision")

    monkeypatch.setattr(store, "insert_batch", _reject)
    with pytest.raises(DuplicateFrameError):
        asyncio.run(scheduler.run(CaptureRange(start=1.0, end=2.0, interval=1.0)))

    assert not scheduler.running
    assert source.seeks[-1] == 1.0
