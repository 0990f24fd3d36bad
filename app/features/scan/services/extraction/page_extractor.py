"""
Page Extractor

Owns one headless Chrome per scan. Loads the target page, waits for the
network to go quiet, and reads the accessibility-relevant elements into a
PageSnapshot.

Selenium is blocking, so the async entry points run each driver call in a
worker thread.
"""
import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from pydantic import ValidationError
from selenium import webdriver
from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service
from selenium.webdriver.support.ui import WebDriverWait

from app.features.scan.exceptions import (
    EvaluationFailure,
    LaunchFailure,
    NavigationError,
    NavigationTimeout,
)
from app.features.scan.schemas.snapshot import PageSnapshot
from app.platform.config import settings
from app.platform.logger import get_logger

logger = get_logger(__name__)


ELEMENT_SELECTORS = {
    "images": "img",
    "links": "a",
    "buttons": 'button, input[type="button"], input[type="submit"]',
    "forms": "form",
    "headings": "h1, h2, h3, h4, h5, h6",
    "inputs": "input, textarea, select",
}

EXTRACTION_SCRIPT = """
const selectors = arguments[0];
const describe = (element) => {
  const attributes = {};
  for (const attr of Array.from(element.attributes)) {
    attributes[attr.name] = attr.value;
  }
  return {
    tagName: element.tagName.toLowerCase(),
    attributes: attributes,
    textContent: (element.textContent || '').trim(),
    innerHTML: element.innerHTML,
  };
};
const snapshot = {title: document.title, url: window.location.href};
for (const [category, selector] of Object.entries(selectors)) {
  snapshot[category] = Array.from(document.querySelectorAll(selector)).map(describe);
}
return snapshot;
"""

NETWORK_PROBE_SCRIPT = """
return {
  readyState: document.readyState,
  resources: performance.getEntriesByType('resource').length,
};
"""


class NetworkIdle:
    """
    WebDriverWait condition: the document has finished loading and no new
    resource fetches have been recorded for `quiet_window` seconds.
    """

    def __init__(self, quiet_window: float, clock=time.monotonic):
        self.quiet_window = quiet_window
        self.clock = clock
        self._last_count: Optional[int] = None
        self._last_change = clock()

    def __call__(self, driver) -> bool:
        probe = driver.execute_script(NETWORK_PROBE_SCRIPT) or {}
        count = probe.get("resources", 0)
        now = self.clock()

        if count != self._last_count:
            self._last_count = count
            self._last_change = now
            return False

        return probe.get("readyState") == "complete" and now - self._last_change >= self.quiet_window


class BrowserSession:
    """One browser tab bound to a single scan."""

    def __init__(self, driver: webdriver.Chrome, idle_window_ms: int = 500):
        self.driver = driver
        self.idle_window = idle_window_ms / 1000

    def navigate_sync(self, url: str, timeout: float) -> None:
        """
        Load `url` and wait for network idle, all within `timeout` seconds.

        Raises:
            NavigationTimeout: load or idle wait exceeded the timeout
            NavigationError: the browser refused or failed the navigation
        """
        started = time.monotonic()
        try:
            self.driver.set_page_load_timeout(timeout)
            self.driver.get(url)
        except TimeoutException as e:
            raise NavigationTimeout(f"Navigation timeout of {int(timeout * 1000)} ms exceeded") from e
        except WebDriverException as e:
            raise NavigationError(f"Navigation to {url} failed: {e.msg or e}") from e

        remaining = timeout - (time.monotonic() - started)
        if remaining <= 0:
            raise NavigationTimeout(f"Navigation timeout of {int(timeout * 1000)} ms exceeded")

        try:
            WebDriverWait(self.driver, remaining, poll_frequency=self.idle_window / 2).until(
                NetworkIdle(self.idle_window)
            )
        except TimeoutException as e:
            raise NavigationTimeout(
                f"Network did not become idle within {int(timeout * 1000)} ms"
            ) from e

    def snapshot_sync(self) -> PageSnapshot:
        """
        Run the extraction script in the page.

        Raises:
            EvaluationFailure: script error or a payload that is not a snapshot
        """
        try:
            payload = self.driver.execute_script(EXTRACTION_SCRIPT, ELEMENT_SELECTORS)
        except WebDriverException as e:
            raise EvaluationFailure(f"Extraction script failed: {e.msg or e}") from e

        if not isinstance(payload, dict):
            raise EvaluationFailure("Extraction script returned no data")

        try:
            return PageSnapshot.model_validate(payload)
        except ValidationError as e:
            raise EvaluationFailure(f"Extraction returned an invalid snapshot: {e.error_count()} errors") from e

    async def navigate(self, url: str, timeout: float) -> None:
        await asyncio.to_thread(self.navigate_sync, url, timeout)

    async def snapshot(self) -> PageSnapshot:
        return await asyncio.to_thread(self.snapshot_sync)


class PageExtractor:
    def __init__(
        self,
        chromedriver_path: Optional[str] = None,
        navigation_timeout: Optional[float] = None,
        idle_window_ms: Optional[int] = None,
    ):
        self.chromedriver_path = chromedriver_path or settings.CHROMEDRIVER_PATH
        self.navigation_timeout = navigation_timeout or settings.NAVIGATION_TIMEOUT_SECONDS
        self.idle_window_ms = idle_window_ms or settings.NETWORK_IDLE_WINDOW_MS

    @staticmethod
    def build_options() -> Options:
        chrome_options = Options()
        chrome_options.add_argument("--headless=new")
        chrome_options.add_argument("--no-sandbox")
        chrome_options.add_argument("--disable-setuid-sandbox")
        chrome_options.add_argument("--disable-dev-shm-usage")
        return chrome_options

    def launch(self) -> webdriver.Chrome:
        """Start a fresh Chrome. Raises LaunchFailure."""
        try:
            if self.chromedriver_path:
                driver_service = Service(executable_path=self.chromedriver_path)
                return webdriver.Chrome(service=driver_service, options=self.build_options())
            return webdriver.Chrome(options=self.build_options())
        except WebDriverException as e:
            raise LaunchFailure(f"Browser could not start: {e.msg or e}") from e

    @staticmethod
    def release(driver: webdriver.Chrome) -> None:
        try:
            driver.quit()
        except WebDriverException as e:
            logger.warning(f"Browser did not quit cleanly: {e}")

    @asynccontextmanager
    async def open_session(self) -> AsyncIterator[BrowserSession]:
        """
        Launch a browser for the duration of the block and quit it on every exit path.
        """
        driver = await asyncio.to_thread(self.launch)
        logger.info("Browser launched")
        try:
            yield BrowserSession(driver, idle_window_ms=self.idle_window_ms)
        finally:
            await asyncio.to_thread(self.release, driver)
            logger.info("Browser released")

    async def extract(self, url: str) -> PageSnapshot:
        """Convenience path: launch, load, snapshot, release."""
        async with self.open_session() as session:
            await session.navigate(url, self.navigation_timeout)
            return await session.snapshot()
