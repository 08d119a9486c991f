"""ABOUTME: PDF rendering adapters for invoice reports
ABOUTME: Prints the HTML rendition of a report to an A4 PDF with headless Chromium via Playwright"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path

from playwright.sync_api import sync_playwright

logger = logging.getLogger(__name__)

PAGE_MARGIN = "15mm"


class PdfRenderer(ABC):
    @abstractmethod
    def render_html_to_pdf(self, html: str, output_path: Path) -> None:
        """Write `html` to `output_path` as a PDF. Raises on failure."""
        raise NotImplementedError


class PlaywrightPdfRenderer(PdfRenderer):
    """Starts a browser per document.

    Rendering happens in the Celery worker one entity at a time, so there is
    nothing to gain from keeping a browser around between entities.
    """

    def __init__(self, timeout_ms: float = 30_000) -> None:
        self.timeout_ms = timeout_ms

    def render_html_to_pdf(self, html: str, output_path: Path) -> None:
        with sync_playwright() as playwright:
            browser = playwright.chromium.launch(headless=True)
            try:
                page = browser.new_page()
                page.set_content(html, timeout=self.timeout_ms)
                page.pdf(
                    path=str(output_path),
                    format="A4",
                    print_background=True,
                    prefer_css_page_size=True,
                    display_header_footer=False,
                    margin={"top": PAGE_MARGIN, "right": PAGE_MARGIN, "bottom": PAGE_MARGIN, "left": PAGE_MARGIN},
                )
            finally:
                browser.close()
        logger.debug("Rendered PDF %s", output_path)
