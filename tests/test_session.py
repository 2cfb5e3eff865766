from __future__ import annotations

import asyncio
import io
import zipfile

import pytest

from src.datatypes import AppConfig, ExportConfig
from src.frame_extract.errors import (
    CaptureError,
    EmptyArchiveError,
    FrameNotFoundError,
    NothingToExportError,
    SessionBusyError,
    SourceError,
)
from src.frame_extract.models import CaptureProgress, CaptureRange, CapturedFrame, ExportSettings
from src.frame_extract.session import ExtractionSession, SessionState
from tests.helpers.fake_source import FakeVideoSource


def _session(source: FakeVideoSource | None = None, config: AppConfig | None = None) -> ExtractionSession:
    session = ExtractionSession(config)
    session.load_source(source or FakeVideoSource(duration=4.0))
    return session


def test_source_required_before_use() -> None:
    session = ExtractionSession()
    with pytest.raises(SourceError):
        _ = session.source


def test_export_with_empty_store_fails_fast() -> None:
    session = _session()
    with pytest.raises(NothingToExportError):
        asyncio.run(session.export_all(ExportSettings()))
    assert session.state is SessionState.IDLE


def test_capture_then_export_bundles_every_frame() -> None:
    session = _session()

    async def _scenario():
        await session.run_capture(CaptureRange(start=0.0, end=4.0, interval=1.0))
        return await session.export_all(ExportSettings())

    artifact = asyncio.run(_scenario())
    assert artifact.filename == "image_frames.zip"
    with zipfile.ZipFile(io.BytesIO(artifact.data)) as bundle:
        assert bundle.namelist() == [f"extracted_frames/image_0{idx}.jpg" for idx in range(1, 6)]
    assert session.state is SessionState.IDLE


def test_export_uses_configured_archive_folder() -> None:
    config = AppConfig(export=ExportConfig(archive_folder="stills"))
    session = _session(config=config)

    async def _scenario():
        await session.run_capture(CaptureRange(start=0.0, end=1.0, interval=1.0))
        return await session.export_all(ExportSettings())

    artifact = asyncio.run(_scenario())
    assert all(name.startswith("stills/") for name in artifact.entries)


def test_export_of_only_corrupt_frames_raises_empty_archive() -> None:
    session = _session()
    session.store.insert_one(CapturedFrame(timestamp=0.0, data=b"corrupt", width=4, height=4))
    with pytest.raises(EmptyArchiveError):
        asyncio.run(session.export_all(ExportSettings()))
    assert session.state is SessionState.IDLE


def test_operations_are_mutually_exclusive_during_capture() -> None:
    session = _session()
    observed: list[tuple[SessionState, bool]] = []

    def _on_progress(update: CaptureProgress) -> None:
        observed.append((session.state, session.transport_enabled))
        if len(observed) == 1:
            with pytest.raises(SessionBusyError):
                session.load_source(FakeVideoSource())

    asyncio.run(
        session.run_capture(CaptureRange(start=0.0, end=2.0, interval=1.0), progress=_on_progress)
    )

    assert observed[0] == (SessionState.CAPTURING, False)
    assert session.state is SessionState.IDLE
    assert session.transport_enabled


def test_manual_capture_rejected_while_busy() -> None:
    session = _session()

    async def _scenario() -> None:
        pending: list[asyncio.Task[CapturedFrame]] = []

        def _on_progress(update: CaptureProgress) -> None:
            if not pending:
                pending.append(asyncio.ensure_future(session.capture_current()))

        await session.run_capture(CaptureRange(start=0.0, end=1.0, interval=1.0), progress=_on_progress)
        with pytest.raises(SessionBusyError):
            await pending[0]

    asyncio.run(_scenario())


def test_failed_capture_returns_session_to_idle() -> None:
    source = FakeVideoSource(duration=4.0, fail_seek=lambda seconds: seconds == 2.0)
    session = _session(source)

    with pytest.raises(CaptureError):
        asyncio.run(session.run_capture(CaptureRange(start=0.0, end=4.0, interval=1.0)))

    assert session.state is SessionState.IDLE
    assert len(session.store) == 2


def test_fps_is_cached_until_source_changes(monkeypatch: pytest.MonkeyPatch) -> None:
    session = _session()
    calls: list[object] = []

    async def _fake_estimate(source) -> int:
        calls.append(source)
        return 24

    monkeypatch.setattr(session.estimator, "estimate", _fake_estimate)

    async def _scenario() -> tuple[int, int]:
        return await session.detect_fps(), await session.detect_fps()

    assert asyncio.run(_scenario()) == (24, 24)
    assert len(calls) == 1
    assert session.detected_fps == 24

    session.load_source(FakeVideoSource(duration=2.0))
    assert session.detected_fps is None
    assert asyncio.run(session.detect_fps()) == 24
    assert len(calls) == 2


def test_loading_new_source_clears_store_and_closes_previous() -> None:
    first = FakeVideoSource(duration=2.0)
    session = _session(first)
    asyncio.run(session.capture_current())
    assert len(session.store) == 1

    session.load_source(FakeVideoSource(duration=3.0))
    assert len(session.store) == 0
    assert first.closed


def test_close_releases_source_and_is_idempotent() -> None:
    source = FakeVideoSource(duration=2.0)
    session = _session(source)
    session.close()
    assert source.closed
    with pytest.raises(SourceError):
        _ = session.source
    session.close()


def test_default_range_with_fps_samples_every_frame() -> None:
    session = _session(FakeVideoSource(duration=12.5))
    capture_range = session.default_range(24)

    assert capture_range.start == 0.0
    assert capture_range.end == 12.5
    assert capture_range.interval == 0.0417


def test_default_range_uses_capture_config() -> None:
    session = _session(FakeVideoSource(duration=6.0))
    assert session.default_range() == CaptureRange(start=0.0, end=6.0, interval=1.0)


def test_capture_current_prepends_snapshot() -> None:
    source = FakeVideoSource(duration=4.0)
    session = _session(source)

    async def _scenario() -> CapturedFrame:
        await session.run_capture(CaptureRange(start=0.0, end=1.0, interval=1.0))
        await source.seek(3.0)
        return await session.capture_current()

    manual = asyncio.run(_scenario())
    assert session.store.frames()[0] is manual
    assert manual.timestamp == 3.0


def test_export_single_names_frame_01() -> None:
    session = _session()

    async def _scenario():
        frames = await session.run_capture(CaptureRange(start=0.0, end=3.0, interval=1.0))
        return await session.export_single(frames[2].id, ExportSettings(format="png", filename_prefix="shot"))

    artifact = asyncio.run(_scenario())
    assert artifact.filename == "shot_01.png"
    assert artifact.media_type == "image/png"
    assert artifact.data.startswith(b"\x89PNG")


def test_export_single_unknown_id() -> None:
    session = _session()
    with pytest.raises(FrameNotFoundError):
        asyncio.run(session.export_single("missing", ExportSettings()))
