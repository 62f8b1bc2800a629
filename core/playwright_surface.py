"""
Playwright-backed automation surface.

Wraps a single Playwright ``Page`` and implements the AutomationSurface
protocol on top of it. Playwright errors are translated at this boundary:

    playwright TimeoutError  ->  SurfaceTimeoutError
    playwright Error         ->  SurfaceError

so the pipeline only ever sees the application's own exception types.

Usage:
    with open_browser_surface(headless=True, timeout_ms=30000) as surface:
        surface.navigate("https://www.grubhub.com/login")
        ...

The sync API is used on purpose: the pipeline blocks on every interaction
anyway, and a run owns its browser for its whole lifetime. Playwright's
sync objects are bound to the thread that created them, so a run thread
must open its own surface.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Optional

from playwright.sync_api import (
    Error as PlaywrightError,
    Page,
    TimeoutError as PlaywrightTimeoutError,
    sync_playwright,
)

from logging_config import get_logger
from .exceptions import ElementNotFoundError, SurfaceError, SurfaceTimeoutError
from .surface import Candidate, Target


logger = get_logger(__name__)


class PlaywrightSurface:
    """
    AutomationSurface implementation driving a Playwright page.

    Attributes:
        page: The underlying Playwright page
        timeout_ms: Default timeout for waits and actions
    """

    def __init__(self, page: Page, timeout_ms: float = 30000, typing_delay_ms: float = 30):
        self.page = page
        self.timeout_ms = timeout_ms
        self.typing_delay_ms = typing_delay_ms
        self.page.set_default_timeout(timeout_ms)

    @contextmanager
    def _translate(self, action: str, target: Optional[Target] = None) -> Iterator[None]:
        label = target if isinstance(target, str) else None
        try:
            yield
        except PlaywrightTimeoutError:
            raise SurfaceTimeoutError(action, self.timeout_ms, target=label)
        except PlaywrightError as e:
            raise SurfaceError(f"Could not {action}: {e.message}", action=action, target=label)

    def navigate(self, url: str) -> None:
        logger.debug(f"Navigating to {url}")
        with self._translate(f"load {url}", url):
            self.page.goto(url, wait_until="domcontentloaded")

    def click(self, target: Target) -> None:
        with self._translate("click", target):
            if isinstance(target, str):
                self.page.click(target)
            else:
                target.click()

    def type_text(self, text: str) -> None:
        with self._translate("type text"):
            self.page.keyboard.type(text, delay=self.typing_delay_ms)

    def fill(self, target: Target, text: str) -> None:
        with self._translate("fill", target):
            if isinstance(target, str):
                self.page.fill(target, text)
            else:
                target.fill(text)

    def read_text(self, target: Target) -> str:
        with self._translate("read text", target):
            if isinstance(target, str):
                element = self.page.query_selector(target)
                if element is None:
                    raise ElementNotFoundError(target)
                return element.inner_text().strip()
            return target.inner_text().strip()

    def read_all(self, selector: str) -> List[Candidate]:
        with self._translate("list elements", selector):
            return [
                Candidate(display_text=element.inner_text().strip(), handle=element)
                for element in self.page.query_selector_all(selector)
            ]

    def read_values(self, selector: str) -> List[str]:
        with self._translate("read input values", selector):
            return [element.input_value().strip() for element in self.page.query_selector_all(selector)]

    def run_script(self, script: str) -> Any:
        with self._translate("run page script"):
            return self.page.evaluate(script)

    def select_option(self, selector: str, value: str) -> None:
        with self._translate("select option", selector):
            self.page.select_option(selector, value)

    def wait_for(self, selector: str, state: str = "visible", timeout_ms: Optional[float] = None) -> None:
        with self._translate(f"see {selector} {state}", selector):
            self.page.wait_for_selector(selector, state=state, timeout=timeout_ms or self.timeout_ms)

    def wait_for_load(self, timeout_ms: Optional[float] = None) -> None:
        with self._translate("finish navigation"):
            self.page.wait_for_load_state("load", timeout=timeout_ms or self.timeout_ms)

    def pause(self, ms: float) -> None:
        self.page.wait_for_timeout(ms)

    def is_enabled(self, selector: str) -> bool:
        with self._translate("check enabled state", selector):
            element = self.page.query_selector(selector)
            return element is not None and element.is_enabled()

    def exists(self, selector: str) -> bool:
        with self._translate("look up element", selector):
            return self.page.query_selector(selector) is not None

    def get_attribute(self, selector: str, name: str) -> Optional[str]:
        with self._translate(f"read attribute {name}", selector):
            element = self.page.query_selector(selector)
            return element.get_attribute(name) if element is not None else None

    def save_pdf(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._translate("save confirmation PDF"):
            self.page.pdf(path=str(path))


@contextmanager
def open_browser_surface(headless: bool = True, timeout_ms: float = 30000) -> Iterator[PlaywrightSurface]:
    """
    Launch Chromium, open one page and yield it wrapped as a surface.

    The browser is closed when the block exits, whatever the outcome.
    """
    with sync_playwright() as playwright:
        browser = playwright.chromium.launch(headless=headless)
        try:
            page = browser.new_page(viewport={"width": 1200, "height": 900})
            logger.info(f"Browser launched (headless={headless})")
            yield PlaywrightSurface(page, timeout_ms=timeout_ms)
        finally:
            browser.close()
            logger.info("Browser closed")
