import asyncio
from datetime import datetime
from pathlib import Path

from playwright.async_api import Error as PlaywrightError

from diagnostics import DiagnosticsCollector, now_str
from tests.fakes import EDITOR_URL, FakeContext, FakePage

FIXED = datetime(2026, 1, 2, 3, 4, 5)


def _collector(tmp_path, page=None, context=None):
    collector = DiagnosticsCollector(tmp_path / "artifacts", tmp_dir=tmp_path / "tmp", clock=lambda: FIXED)
    collector.attach(context=context, page=page)
    return collector


def test_now_str():
    assert now_str(FIXED) == "20260102-030405"


def test_terminal_screenshot_taken_once(tmp_path):
    page = FakePage()
    collector = _collector(tmp_path, page=page)

    async def scenario():
        return await asyncio.gather(
            collector.capture_terminal_screenshot("error"),
            collector.capture_terminal_screenshot("final"),
        )

    first, second = asyncio.run(scenario())

    assert first == second
    assert len(page.screenshots) == 1
    assert Path(first) == tmp_path / "artifacts" / "note-post-20260102-030405-error.png"
    assert Path(first).exists()


def test_placeholder_written_when_screenshot_fails(tmp_path):
    page = FakePage()
    page.screenshot_error = PlaywrightError("Target closed")
    collector = _collector(tmp_path, page=page)

    path = asyncio.run(collector.capture_terminal_screenshot())

    assert Path(path).read_bytes().startswith(b"\x89PNG")
    assert collector.report.screenshot == path


def test_placeholder_written_without_page(tmp_path):
    path = asyncio.run(_collector(tmp_path).capture_terminal_screenshot())
    assert Path(path).exists()


def test_page_state_snippet_is_truncated(tmp_path):
    page = FakePage()
    page.html = "x" * 3000
    collector = _collector(tmp_path, page=page)

    report = asyncio.run(collector.capture_page_state("run-error"))

    assert report.url == EDITOR_URL
    assert len(report.html_snippet) == 2000


def test_page_state_failure_is_logged_not_raised(tmp_path):
    page = FakePage()
    page.content_error = PlaywrightError("Target closed")
    collector = _collector(tmp_path, page=page)

    report = asyncio.run(collector.capture_page_state())

    assert report.url == EDITOR_URL
    assert report.html_snippet is None


def test_trace_stopped_once(tmp_path):
    context = FakeContext()
    collector = _collector(tmp_path, context=context)

    async def scenario():
        await collector.start_trace()
        await collector.stop_trace()
        return await collector.stop_trace()

    trace = asyncio.run(scenario())

    stops = [call for call in context.calls if call[0] == "tracing.stop"]
    assert stops == [("tracing.stop", str(tmp_path / "artifacts" / "trace.zip"))]
    assert trace == stops[0][1]
    assert collector.report.network == str(tmp_path / "artifacts" / "network.har")


def test_har_options_point_into_artifact_dir(tmp_path):
    options = _collector(tmp_path).har_options()
    assert options["record_har_path"] == str(tmp_path / "artifacts" / "network.har")
