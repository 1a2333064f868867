"""Tests for the content directory watcher."""

from pathlib import Path

import pytest
from watchdog.events import FileModifiedEvent, FileMovedEvent

from campus_chat import app as app_module
from campus_chat.api import dependencies as deps
from campus_chat.ingest.watcher import ContentEventHandler, Watcher


class RecordingPipeline:
    def __init__(self) -> None:
        self.calls: list[tuple[list[Path], str]] = []

    def ingest_paths(self, paths, trigger="manual"):
        self.calls.append((list(paths), trigger))
        return {"stored": len(paths)}


def test_text_file_changes_are_forwarded(tmp_path: Path) -> None:
    seen: list[list[Path]] = []
    handler = ContentEventHandler(seen.append)

    handler.dispatch(FileModifiedEvent(str(tmp_path / "faq.md")))
    handler.dispatch(FileMovedEvent(str(tmp_path / "draft.tmp"), str(tmp_path / "about.txt")))

    assert seen == [[tmp_path / "faq.md"], [tmp_path / "about.txt"]]


def test_other_files_are_ignored(tmp_path: Path) -> None:
    seen: list[list[Path]] = []
    handler = ContentEventHandler(seen.append)

    handler.dispatch(FileModifiedEvent(str(tmp_path / "logo.png")))
    handler.dispatch(FileModifiedEvent(str(tmp_path / ".hidden.md")))

    assert seen == []


def test_failing_callback_does_not_propagate(tmp_path: Path) -> None:
    def explode(paths):
        raise RuntimeError("ingest failed")

    ContentEventHandler(explode).dispatch(FileModifiedEvent(str(tmp_path / "faq.md")))


def test_watcher_start_and_stop(tmp_path: Path) -> None:
    watcher = Watcher(tmp_path, lambda paths: None)
    watcher.start()
    assert watcher.running
    watcher.start()
    watcher.stop()
    assert not watcher.running


def test_reingest_refreshes_keyword_corpus(content_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    scorer = deps.get_keyword_scorer()
    assert scorer.corpus == {}
    pipeline = RecordingPipeline()
    monkeypatch.setattr(app_module, "get_ingest_pipeline", lambda: pipeline)
    faq = content_dir / "faq.md"
    faq.write_text("# FAQ\n\nHow to register for CampusCrew events.")

    stats = app_module.reingest_changed([faq])

    assert stats == {"stored": 1}
    assert pipeline.calls == [([faq], "watcher")]
    assert "faq" in scorer.corpus
    assert scorer.score("register")[0].source == "faq"
