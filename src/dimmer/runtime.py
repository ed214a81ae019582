"""Browser runtime: open or attach to a page and drive the engine loop."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Callable

from dimmer.commands import handle_command
from dimmer.config_store import ConfigStore, default_fallback_path
from dimmer.control_agent import CommandInbox, start_control_server
from dimmer.controller import EngineController
from dimmer.engine_config import EngineSettings
from dimmer.page_document import PageDocument
from dimmer.storage import create_session_context, session_logger, write_status
from dimmer.timers import TimerQueue
from dimmer.web_common import page_is_closed, playwright_available, safe_page_url


@dataclass
class PageEvents:
    """Flags raised by Playwright page events, consumed by the engine loop."""

    reloaded: int = 0
    closed: bool = False
    errors: list[str] = field(default_factory=list)

    def attach(self, page: Any) -> None:
        page.on("domcontentloaded", self._on_load)
        page.on("close", self._on_close)

    def _on_load(self, *_args: Any) -> None:
        self.reloaded += 1

    def _on_close(self, *_args: Any) -> None:
        self.closed = True

    def take_reload(self) -> bool:
        if not self.reloaded:
            return False
        self.reloaded = 0
        return True


def run_engine_loop(
    page: Any,
    controller: EngineController,
    timers: TimerQueue,
    inbox: CommandInbox,
    *,
    poll_ms: int,
    events: PageEvents | None = None,
    on_command: Callable[[dict[str, Any], dict[str, Any]], None] | None = None,
    should_stop: Callable[[], bool] | None = None,
) -> str:
    """Pump page events, commands and timers until the page goes away.

    Returns the reason the loop ended: ``page-closed`` or ``stopped``.
    """
    document = controller.document
    dispatch = getattr(document, "dispatch_pending", None)

    def handler(payload: dict[str, Any]) -> dict[str, Any]:
        response = handle_command(controller, payload)
        if on_command is not None:
            on_command(payload, response)
        return response

    while True:
        if (events is not None and events.closed) or page_is_closed(page):
            return "page-closed"
        if should_stop is not None and should_stop():
            return "stopped"
        if events is not None and events.take_reload():
            reset = getattr(document, "reset", None)
            if callable(reset):
                reset()
            controller.reattach()
        if callable(dispatch):
            dispatch()
        inbox.drain(handler)
        timers.run_due()
        wait_ms = poll_ms
        next_due = timers.next_due_ms()
        if next_due is not None:
            wait_ms = int(max(1, min(poll_ms, next_due - timers.now())))
        try:
            page.wait_for_timeout(wait_ms)
        except Exception:
            if page_is_closed(page):
                return "page-closed"
            raise


def _launch_browser(playwright_obj: Any, *, headless: bool) -> Any:
    kwargs: dict[str, Any] = {"headless": headless}
    if not headless:
        kwargs["args"] = ["--window-size=1280,860"]
    try:
        return playwright_obj.chromium.launch(channel="chrome", **kwargs)
    except Exception:
        return playwright_obj.chromium.launch(**kwargs)


def open_page(playwright_obj: Any, url: str, *, cdp_port: int | None = None, headless: bool = False) -> Any:
    if cdp_port:
        browser = playwright_obj.chromium.connect_over_cdp(f"http://127.0.0.1:{cdp_port}")
        context = browser.contexts[0] if browser.contexts else browser.new_context()
        for page in context.pages:
            if url and safe_page_url(page).startswith(url):
                return page
        page = context.pages[0] if context.pages and not url else context.new_page()
    else:
        browser = _launch_browser(playwright_obj, headless=headless)
        page = browser.new_page()
    if url:
        page.goto(url, wait_until="domcontentloaded")
    return page


def run_engine(
    url: str,
    *,
    cdp_port: int | None = None,
    headless: bool = False,
    control_port: int = 0,
    settings: EngineSettings | None = None,
) -> str:
    if not playwright_available():
        raise SystemExit(
            "Playwright is not installed. Install with: pip install playwright && playwright install chromium"
        )
    from playwright.sync_api import sync_playwright

    settings = settings or EngineSettings.from_env()
    ctx = create_session_context()
    log = session_logger(ctx.engine_log, echo=settings.debug)
    log(f"session_id={ctx.session_id}")
    log(f"url={url}")
    config_store = ConfigStore(fallback=default_fallback_path(), log=log)
    config = config_store.load()
    inbox = CommandInbox()
    server, _thread = start_control_server(inbox, port=control_port, session_id=ctx.session_id)
    log(f"control agent listening on 127.0.0.1:{server.port}")

    page_url = url

    def publish(state: str) -> None:
        try:
            write_status(
                session_id=ctx.session_id,
                session_dir=ctx.session_dir,
                url=page_url,
                state=state,
                control_port=server.port if state != "stopped" else 0,
                enabled=config.enabled,
                opacity=config.intensity,
                pid=os.getpid(),
            )
        except OSError as exc:
            log(f"status write failed: {exc}")

    reason = "stopped"
    try:
        with sync_playwright() as p:
            page = open_page(p, url, cdp_port=cdp_port, headless=headless)
            page_url = safe_page_url(page) or url
            document = PageDocument(page, log=log)
            timers = TimerQueue()
            controller = EngineController(
                document,
                config,
                timers=timers,
                settings=settings,
                persist=config_store.save,
                log=log,
            )
            events = PageEvents()
            events.attach(page)
            controller.start()
            publish("running")
            try:
                reason = run_engine_loop(
                    page,
                    controller,
                    timers,
                    inbox,
                    poll_ms=settings.poll_ms,
                    events=events,
                    on_command=lambda _payload, _response: publish("running"),
                )
            except KeyboardInterrupt:
                reason = "interrupted"
            finally:
                if page_is_closed(page):
                    timers.cancel_all()
                else:
                    controller.shutdown()
            log(f"engine stopped reason={reason}")
    finally:
        server.shutdown()
        server.server_close()
        publish("stopped")
    return reason
