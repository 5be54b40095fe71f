"""
Shipping-instruction document rendering.

The submission is first filled into an HTML template, then printed to a
single-format PDF by a headless Chromium driven through Playwright. The
browser is launched per document and closed on every exit path.

All submitted values are HTML-escaped by the template environment; absent
values render as empty cells.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from jinja2 import Environment, PackageLoader
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from .configuration import RendererSettings
from .errors import RenderError
from .models import Party, ShippingSubmission, SubmittedBy

logger = logging.getLogger(__name__)

TEMPLATE_NAME = "shipping_instruction.html.j2"


@dataclass
class RenderedDocument:
    html: str
    pdf: bytes


def _blank_none(value: Any) -> Any:
    return "" if value is None else value


def _build_environment() -> Environment:
    return Environment(
        loader=PackageLoader("shipping_gateway", "templates"),
        autoescape=True,
        finalize=_blank_none,
        trim_blocks=True,
        lstrip_blocks=True,
    )


class DocumentRenderer:
    """Turns a ``ShippingSubmission`` into HTML and a rasterized PDF."""

    def __init__(self, settings: Optional[RendererSettings] = None) -> None:
        self.settings = settings or RendererSettings()
        self._env = _build_environment()

    def build_html(self, submission: ShippingSubmission) -> str:
        """
        Fill the document template from a submission.

        Raises:
            RenderError: If the submission carries no container list at all
        """
        if submission.containers is None:
            raise RenderError("Submission has no containers list")

        template = self._env.get_template(TEMPLATE_NAME)
        return template.render(
            user=submission.user or SubmittedBy(),
            carrier_reference=submission.carrierReference,
            billing_party=submission.billingParty or Party(),
            shipper=submission.shipper or Party(),
            consignee=submission.consignee or Party(),
            shipment_value=submission.shipmentValue,
            notes=submission.notes,
            containers=submission.containers,
        )

    async def rasterize(self, html: str) -> bytes:
        """
        Print an HTML document to PDF bytes with a fresh headless browser.

        Raises:
            RenderError: If the browser cannot be started or the page cannot
                be loaded or printed
        """
        try:
            async with async_playwright() as playwright:
                browser = await playwright.chromium.launch(
                    headless=True,
                    args=list(self.settings.launch_args),
                    executable_path=self.settings.chrome_bin or None,
                )
                try:
                    page = await browser.new_page()
                    await page.set_content(html, wait_until="networkidle", timeout=self.settings.timeout_ms)
                    return await page.pdf(format=self.settings.page_format)
                finally:
                    await browser.close()
        except PlaywrightError as exc:
            logger.error(f"PDF rendering failed: {exc}")
            raise RenderError(f"PDF rendering failed: {exc}") from exc

    async def render(self, submission: ShippingSubmission) -> RenderedDocument:
        html = self.build_html(submission)
        pdf = await self.rasterize(html)
        logger.info(f"Rendered shipping instruction with {len(submission.containers or [])} container(s), {len(pdf)} bytes")
        return RenderedDocument(html=html, pdf=pdf)
