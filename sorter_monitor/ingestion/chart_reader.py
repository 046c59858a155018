"""
Chart readers — per-sorter SKU percentages from the plant dashboard.

Page:  ``{base_url}/assignment/{sorter_id}``

Each SKU bar on the page is a container::

    <div class="relative w-full flex justify-between items-center">
      <h1 class="text-xs font-bold px-1 text-center">4J-D-SANTINA-C5WFTFG</h1>
      <h1 class="text-xs font-bold px-1 text-center">12.3%</h1>
    </div>

The first ``h1`` is the SKU, the second the percentage.  Pairs are returned
in page order.  A pair whose percentage does not parse is dropped (logged);
a page with no usable pairs is a ``ChartReadError`` for that sorter only.

Implementations of the ``ChartReader`` capability:

  BrowserChartReader   render the page in headless Chromium (Playwright).
  HtmlChartReader      GET the page with httpx (server-rendered pages only).
  DisabledChartReader  chart capture switched off in config; reads nothing.

``build_chart_reader()`` picks one from ``[monitor] capture_charts`` and
``[scraper] renderer``.  Every reader hands its HTML to ``parse_chart_html()``.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

import httpx
from bs4 import BeautifulSoup
from playwright.sync_api import Browser, Playwright, sync_playwright
from playwright.sync_api import Error as PlaywrightError

from sorter_monitor.config import AppConfig
from sorter_monitor.errors import ChartReadError
from sorter_monitor.models.chart import ChartReading
from sorter_monitor.utils.http import request_with_deadline
from sorter_monitor.utils.time_utils import now_local

logger = logging.getLogger(__name__)

CONTAINER_SELECTOR = "div.relative.w-full.flex.justify-between.items-center"
LABEL_SELECTOR = "h1.text-xs.font-bold.px-1.text-center"


def chart_page_url(base_url: str, sorter_id: int) -> str:
    return f"{base_url}/assignment/{sorter_id}"


# ── Parsing ───────────────────────────────────────────────────────────────────


def parse_chart_html(html: str) -> list[tuple[str, str]]:
    """Extract raw ``(sku, percentage_text)`` pairs in page order."""
    soup = BeautifulSoup(html, "html.parser")
    pairs: list[tuple[str, str]] = []
    for container in soup.select(CONTAINER_SELECTOR):
        labels = container.select(LABEL_SELECTOR)
        if len(labels) < 2:
            continue
        sku = labels[0].get_text(strip=True)
        pct_text = labels[1].get_text(strip=True)
        if sku:
            pairs.append((sku, pct_text))
    return pairs


def parse_percentage(text: str) -> float:
    """Parse ``"12.3%"`` → ``12.3``.

    Raises:
        ValueError: If the text is not a number once the ``%`` is stripped.
    """
    return float(text.strip().removesuffix("%").strip())


def build_reading(
    sorter_id: int,
    pairs: list[tuple[str, str]],
    captured_at: datetime,
) -> ChartReading:
    """Turn raw pairs into a ``ChartReading``.

    Unparseable percentages are skipped.  A SKU listed twice keeps its first
    display position and its last percentage.

    Raises:
        ChartReadError: If no pair survives parsing.
    """
    percentages: dict[str, float] = {}
    ordered: list[str] = []
    for sku, pct_text in pairs:
        try:
            pct = parse_percentage(pct_text)
        except ValueError:
            logger.warning(
                "Skipping unparseable percentage %r for %s",
                pct_text, sku,
                extra={"sorter_id": sorter_id, "operation": "chart_parse"},
            )
            continue
        if sku not in percentages:
            ordered.append(sku)
        percentages[sku] = pct

    if not ordered:
        raise ChartReadError(sorter_id, "no SKU/percentage pairs found on page")

    return ChartReading(
        sorter_id=sorter_id,
        captured_at=captured_at,
        percentage_by_sku=percentages,
        ordered_skus=ordered,
    )


# ── Readers ───────────────────────────────────────────────────────────────────


class ChartReader(ABC):
    """Capability: read one sorter's chart."""

    enabled: bool = True

    @abstractmethod
    def read(self, sorter_id: int) -> ChartReading:
        """Read one sorter.

        Raises:
            ChartReadError: If the page cannot be read or has no data.
        """

    def read_all(self, sorter_ids: list[int]) -> list[ChartReading]:
        """Read every sorter in order; a failure on one never stops the others.

        Returns:
            Readings for the sorters that succeeded, in ``sorter_ids`` order.
        """
        readings: list[ChartReading] = []
        for sorter_id in sorter_ids:
            try:
                readings.append(self.read(sorter_id))
            except ChartReadError as exc:
                logger.warning(
                    "Chart read failed: %s", exc,
                    extra={"sorter_id": sorter_id, "operation": "chart_read"},
                )
        return readings

    def close(self) -> None:
        """Release any network or browser resources."""


class HtmlChartReader(ChartReader):
    """Fetch ``/assignment/{id}`` over HTTP and parse it with BeautifulSoup.

    Only suitable for dashboards that render their bars server-side.

    Args:
        base_url: Dashboard base URL (no trailing slash).
        timeout_s: Whole-page deadline; running past it is a read failure.
        http_client: Optional pre-built ``httpx.Client``.
    """

    def __init__(
        self,
        base_url: str,
        timeout_s: float = 30.0,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._client = http_client or httpx.Client(timeout=timeout_s)

    def page_url(self, sorter_id: int) -> str:
        return chart_page_url(self.base_url, sorter_id)

    def read(self, sorter_id: int) -> ChartReading:
        url = self.page_url(sorter_id)
        try:
            resp = request_with_deadline(self._client, "GET", url, self.timeout_s)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise ChartReadError(sorter_id, f"GET {url} failed: {exc}") from exc

        reading = build_reading(sorter_id, parse_chart_html(resp.text), now_local())
        logger.debug("Sorter %d chart: %d SKUs", sorter_id, reading.total_skus)
        return reading

    def close(self) -> None:
        self._client.close()


class BrowserChartReader(ChartReader):
    """Render ``/assignment/{id}`` in headless Chromium and parse the DOM.

    The dashboard builds its bars client-side, so the page is loaded in a
    Playwright browser and read once the first bar container is attached.
    The browser is started on the first read and reused until ``close()``.

    Args:
        base_url: Dashboard base URL (no trailing slash).
        timeout_s: Deadline for navigation plus rendering of one page.
        browser: Optional already-launched Playwright ``Browser``.
    """

    def __init__(
        self,
        base_url: str,
        timeout_s: float = 30.0,
        browser: Optional[Browser] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._browser = browser
        self._playwright: Optional[Playwright] = None

    def page_url(self, sorter_id: int) -> str:
        return chart_page_url(self.base_url, sorter_id)

    def _ensure_browser(self) -> Browser:
        if self._browser is None:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(headless=True)
            logger.info("Headless browser started for chart capture")
        return self._browser

    def render(self, sorter_id: int) -> str:
        """Return the rendered HTML of one sorter's page.

        Raises:
            ChartReadError: On navigation failure, or if no bar container
                appears before the deadline.
        """
        url = self.page_url(sorter_id)
        deadline = time.monotonic() + self.timeout_s
        try:
            page = self._ensure_browser().new_page()
            try:
                page.goto(url, timeout=self.timeout_s * 1000)
                # Playwright reads timeout=0 as "wait forever".
                remaining_ms = max((deadline - time.monotonic()) * 1000, 1.0)
                page.wait_for_selector(CONTAINER_SELECTOR, state="attached", timeout=remaining_ms)
                return page.content()
            finally:
                page.close()
        except PlaywrightError as exc:
            raise ChartReadError(sorter_id, f"render {url} failed: {exc}") from exc

    def read(self, sorter_id: int) -> ChartReading:
        reading = build_reading(sorter_id, parse_chart_html(self.render(sorter_id)), now_local())
        logger.debug("Sorter %d chart: %d SKUs", sorter_id, reading.total_skus)
        return reading

    def close(self) -> None:
        if self._browser is not None:
            self._browser.close()
            self._browser = None
        if self._playwright is not None:
            self._playwright.stop()
            self._playwright = None


class DisabledChartReader(ChartReader):
    """Chart capture switched off: snapshots carry count-based fields only."""

    enabled = False

    def read(self, sorter_id: int) -> ChartReading:
        raise ChartReadError(sorter_id, "chart capture is disabled")

    def read_all(self, sorter_ids: list[int]) -> list[ChartReading]:
        return []


def build_chart_reader(config: AppConfig, force: bool = False) -> ChartReader:
    """Reader chosen by ``[scraper] renderer``; disabled when capture is off.

    Args:
        force: Build a real reader even if ``capture_charts`` is false.
    """
    if not (config.monitor.capture_charts or force):
        return DisabledChartReader()
    if config.scraper.renderer == "http":
        return HtmlChartReader(config.packing.url, timeout_s=config.scraper.timeout_s)
    return BrowserChartReader(config.packing.url, timeout_s=config.scraper.timeout_s)
