"""HTML (inline or by URL) to PDF."""
import logging
import re

from ..browser.session import open_page
from .base import BrowserConverter, pdf_kwargs
from .models import VIEWPORTS, ConversionInput, HtmlOptions, coerce_options

log = logging.getLogger(__name__)

_CHARSET_RE = re.compile(r"<meta[^>]*charset", re.IGNORECASE)
_VIEWPORT_RE = re.compile(r"<meta[^>]*viewport", re.IGNORECASE)
_HTML_RE = re.compile(r"<html[^>]*>", re.IGNORECASE)
_HEAD_RE = re.compile(r"<head[^>]*>", re.IGNORECASE)

CHARSET_META = '<meta charset="UTF-8">'
VIEWPORT_META = '<meta name="viewport" content="width=device-width, initial-scale=1.0">'


def normalize_wait_until(value: str) -> str:
    """Map Puppeteer-style idle names onto Playwright's load states."""
    if value in ("networkidle0", "networkidle2"):
        return "networkidle"
    if value in ("load", "domcontentloaded", "networkidle", "commit"):
        return value
    return "networkidle"


def ensure_document(html: str) -> str:
    """Wrap fragments in a full document and add missing charset/viewport metas."""
    if not _HTML_RE.search(html):
        return (
            "<!DOCTYPE html>\n<html>\n<head>\n"
            f"{CHARSET_META}\n{VIEWPORT_META}\n"
            f"</head>\n<body>\n{html}\n</body>\n</html>"
        )
    metas = []
    if not _CHARSET_RE.search(html):
        metas.append(CHARSET_META)
    if not _VIEWPORT_RE.search(html):
        metas.append(VIEWPORT_META)
    if not metas:
        return html
    block = "\n".join(metas)
    head = _HEAD_RE.search(html)
    if head:
        return html[:head.end()] + "\n" + block + html[head.end():]
    tag = _HTML_RE.search(html)
    return html[:tag.end()] + f"\n<head>\n{block}\n</head>" + html[tag.end():]


class HtmlConverter(BrowserConverter):
    name = "HtmlConverter"
    supported_formats = (".html", ".htm")
    max_file_size = 50 * 1024 * 1024

    async def convert(self, conversion_input: ConversionInput) -> bytes:
        options = coerce_options(HtmlOptions, conversion_input.options)
        session = await self.session()

        page_options = {"ignore_https_errors": options.ignore_https_errors}
        if options.credentials:
            page_options["http_credentials"] = {
                "username": options.credentials.get("username", ""),
                "password": options.credentials.get("password", ""),
            }

        async with open_page(session, **page_options) as page:
            viewport = VIEWPORTS.get(options.format)
            if viewport:
                await page.set_viewport_size(viewport)

            wait_until = normalize_wait_until(options.wait_until)
            if conversion_input.url:
                await page.goto(conversion_input.url, wait_until=wait_until,
                                timeout=options.navigation_timeout_ms)
            else:
                html = ensure_document(self.get_content(conversion_input))
                await page.set_content(html, wait_until=wait_until,
                                       timeout=options.navigation_timeout_ms)

            if options.execute_script:
                await page.evaluate(options.execute_script)
            await self._wait_for(page, options)
            await page.evaluate("() => document.fonts.ready")
            return await page.pdf(**pdf_kwargs(options))

    @staticmethod
    async def _wait_for(page, options: HtmlOptions) -> None:
        target = options.wait_for.strip()
        if not target:
            return
        if target.startswith(("#", ".")):
            await page.wait_for_selector(target, timeout=options.navigation_timeout_ms)
        elif target.isdigit():
            await page.wait_for_timeout(int(target))
        else:
            log.warning(f"Ignoring wait_for value {target!r}: not a selector or milliseconds")
