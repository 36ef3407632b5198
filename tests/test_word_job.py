"""Tests for the per-word job executor."""

from __future__ import annotations

import asyncio
import os

import pytest

from icon_errors import DirectoryError
from stubs import StubSource, two_icons
from word_job import WordTask, run_word_job, word_directory


def _run(task, source):
    return asyncio.run(run_word_job(task, session=None, searcher=source.search, fetcher=source.fetch))


def test_success_saves_every_icon(tmp_path):
    source = StubSource(icons={"cat": two_icons("cat")})
    outcome = _run(WordTask("cat", str(tmp_path)), source)

    assert outcome.success
    assert outcome.error is None
    assert sorted(os.listdir(tmp_path / "cat")) == ["icon1.svg", "icon2.png"]
    assert [os.path.basename(p) for p in outcome.files] == ["icon1.svg", "icon2.png"]


def test_single_icon_is_enough(tmp_path):
    source = StubSource(icons={"sun": ["https://icons.test/sun"]})
    outcome = _run(WordTask("sun", str(tmp_path)), source)

    assert outcome.success
    assert os.listdir(tmp_path / "sun") == ["icon1.png"]


def test_no_icons_fails_and_leaves_no_directory(tmp_path):
    source = StubSource(icons={})
    for _ in range(2):
        outcome = _run(WordTask("dog", str(tmp_path)), source)
        assert not outcome.success
        assert outcome.error == "no icons found for dog"
        assert not (tmp_path / "dog").exists()
    assert os.listdir(tmp_path) == []


def test_search_failure_removes_directory(tmp_path):
    source = StubSource(search_errors={"cat"})
    outcome = _run(WordTask("cat", str(tmp_path)), source)

    assert not outcome.success
    assert outcome.error == "Failed to search icons for cat: HTTP 503: Service Unavailable"
    assert not (tmp_path / "cat").exists()


def test_one_failed_fetch_rolls_back_whole_word(tmp_path):
    icons = two_icons("cat")
    source = StubSource(icons={"cat": icons}, failing_urls={icons[1]})
    outcome = _run(WordTask("cat", str(tmp_path)), source)

    assert not outcome.success
    assert outcome.error == f"Failed to download {icons[1]}: HTTP 404: Not Found"
    assert not (tmp_path / "cat").exists()


def test_directory_error_is_a_failed_outcome(tmp_path):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("x")
    source = StubSource(icons={"cat": two_icons("cat")})
    outcome = _run(WordTask("cat", str(blocker)), source)

    assert not outcome.success
    assert outcome.error.startswith("Failed to create directory for cat")
    assert source.searched == []


def test_unexpected_error_propagates_after_cleanup(tmp_path):
    async def broken_search(session, word, base_url="", timeout=None):
        raise RuntimeError("parser exploded")

    task = WordTask("cat", str(tmp_path))
    with pytest.raises(RuntimeError, match="parser exploded"):
        asyncio.run(run_word_job(task, session=None, searcher=broken_search))
    assert not (tmp_path / "cat").exists()


def test_base_url_is_passed_to_searcher(tmp_path):
    seen = []

    async def search(session, word, base_url="", timeout=None):
        seen.append(base_url)
        return []

    asyncio.run(run_word_job(WordTask("cat", str(tmp_path), "https://s.test/?q="), session=None, searcher=search))
    assert seen == ["https://s.test/?q="]


def test_word_directory_removes_on_error(tmp_path):
    target = tmp_path / "cat"
    with pytest.raises(ValueError):
        with word_directory("cat", str(target)):
            (target / "icon1.svg").write_text("<svg/>")
            raise ValueError("stop")
    assert not target.exists()


def test_word_directory_keeps_content_on_success(tmp_path):
    target = tmp_path / "cat"
    with word_directory("cat", str(target)):
        (target / "icon1.svg").write_text("<svg/>")
    assert (target / "icon1.svg").exists()


def test_word_directory_raises_directory_error(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    with pytest.raises(DirectoryError):
        with word_directory("cat", str(blocker / "cat")):
            pass
