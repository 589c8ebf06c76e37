import asyncio
import signal

from cleanup import CleanupCoordinator
from tests.fakes import FakePage, FakePlaywright


class RecordingDiagnostics:
    def __init__(self, calls):
        self.calls = calls

    async def stop_trace(self):
        self.calls.append("stop_trace")

    async def capture_page_state(self, tag):
        self.calls.append(f"page_state:{tag}")

    async def capture_terminal_screenshot(self, tag):
        self.calls.append(f"screenshot:{tag}")


def _coordinator():
    page = FakePage()
    pw = FakePlaywright(page)
    coordinator = CleanupCoordinator(RecordingDiagnostics(pw.calls))
    coordinator.attach(playwright=pw, browser=pw.browser, context=pw.context, page=page)
    return coordinator, pw


def test_concurrent_teardown_closes_everything_once():
    coordinator, pw = _coordinator()

    async def scenario():
        await asyncio.gather(coordinator.teardown("error"), coordinator.teardown("signal"))
        await coordinator.teardown("complete")

    asyncio.run(scenario())

    assert pw.calls == ["stop_trace", "page.close", "context.close", "browser.close", "playwright.stop"]
    assert coordinator.reason == "error"


def test_failing_step_does_not_stop_the_rest():
    coordinator, pw = _coordinator()

    async def broken_close():
        raise RuntimeError("page already gone")

    pw.page.close = broken_close
    asyncio.run(coordinator.teardown())

    assert pw.context.closed
    assert pw.browser.closed
    assert pw.stopped


def test_teardown_with_nothing_attached():
    coordinator = CleanupCoordinator()
    asyncio.run(coordinator.teardown())
    assert coordinator.started


def test_signal_triggers_teardown_and_cancels_main_task():
    coordinator, pw = _coordinator()

    async def scenario():
        main = asyncio.ensure_future(asyncio.sleep(10))
        coordinator.install(asyncio.get_running_loop(), main_task=main)
        try:
            coordinator._on_signal(signal.SIGTERM)
            await coordinator.teardown("late")
            await asyncio.gather(main, return_exceptions=True)
        finally:
            coordinator.uninstall()
        return main

    main = asyncio.run(scenario())

    assert main.cancelled()
    assert coordinator.signalled == signal.SIGTERM
    assert coordinator.reason == "signal-SIGTERM"
    assert "playwright.stop" in pw.calls


def test_unhandled_async_error_captures_state_then_tears_down():
    coordinator, pw = _coordinator()

    async def scenario():
        loop = asyncio.get_running_loop()
        coordinator._on_unhandled(loop, {"message": "boom", "exception": RuntimeError("boom")})
        for _ in range(20):
            if coordinator.started:
                break
            await asyncio.sleep(0)
        await coordinator.teardown("after")

    asyncio.run(scenario())

    assert pw.calls[:2] == ["page_state:unhandled", "screenshot:unhandled"]
    assert coordinator.reason == "unhandled"
    assert pw.calls.count("playwright.stop") == 1


def test_released_main_task_is_not_cancelled_by_signal():
    coordinator, pw = _coordinator()

    async def scenario():
        main = asyncio.ensure_future(asyncio.sleep(0.01))
        coordinator.install(asyncio.get_running_loop(), main_task=main)
        try:
            coordinator.release_main_task()
            coordinator._on_signal(signal.SIGINT)
            await coordinator.teardown("late")
            await main
        finally:
            coordinator.uninstall()
        return main

    main = asyncio.run(scenario())

    assert not main.cancelled()
    assert coordinator.reason == "signal-SIGINT"
    assert pw.calls.count("playwright.stop") == 1


def test_second_signal_does_not_cancel_again():
    coordinator, _ = _coordinator()

    async def scenario():
        first = asyncio.ensure_future(asyncio.sleep(10))
        coordinator.install(asyncio.get_running_loop(), main_task=first)
        try:
            coordinator._on_signal(signal.SIGTERM)
            await asyncio.gather(first, return_exceptions=True)
            second = asyncio.ensure_future(asyncio.sleep(0.01))
            coordinator._main_task = second
            coordinator._on_signal(signal.SIGTERM)
            await second
            await coordinator.teardown()
        finally:
            coordinator.uninstall()
        return first, second

    first, second = asyncio.run(scenario())

    assert first.cancelled()
    assert not second.cancelled()


def test_teardown_waits_for_unhandled_error_handling():
    coordinator, pw = _coordinator()

    async def scenario():
        loop = asyncio.get_running_loop()
        coordinator._on_unhandled(loop, {"message": "boom", "exception": RuntimeError("boom")})
        await coordinator.teardown("complete")
        return coordinator._unhandled_task

    task = asyncio.run(scenario())

    assert task.done()
    assert coordinator.reason == "complete"
    assert "screenshot:unhandled" in pw.calls
    assert pw.calls.count("playwright.stop") == 1


def test_uninstall_restores_exception_handler():
    coordinator = CleanupCoordinator()

    async def scenario():
        loop = asyncio.get_running_loop()
        coordinator.install(loop)
        installed = loop.get_exception_handler()
        coordinator.uninstall()
        return installed, loop.get_exception_handler()

    installed, restored = asyncio.run(scenario())

    assert installed == coordinator._on_unhandled
    assert restored is None
