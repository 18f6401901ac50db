"""Converter base classes: validation, timing, error wrapping, session ownership."""
import io
import logging
import time
from datetime import datetime, timezone

from pypdf import PdfReader

from ..browser.launcher import BrowserSession, LaunchOptions
from ..browser.session import open_page
from ..errors import ConversionError, ErrorCode, RenderError
from .models import ConversionInput, ConversionMetadata, ConversionResult, PdfOptions, ValidationResult

log = logging.getLogger(__name__)

DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024
MULTI_FILE_FACTOR = 5


def count_pages(pdf: bytes) -> int | None:
    """Page count of a PDF buffer, or None if it cannot be parsed."""
    try:
        return len(PdfReader(io.BytesIO(pdf)).pages)
    except Exception as e:
        log.debug(f"Could not count PDF pages: {e}")
        return None


class BaseConverter:
    """Runs validate -> convert -> metadata for one input format."""

    name = "BaseConverter"
    supported_formats: tuple[str, ...] = ()
    max_file_size = DEFAULT_MAX_FILE_SIZE

    def __init__(self, *, event_logger=None):
        self.event_logger = event_logger

    async def convert(self, conversion_input: ConversionInput) -> bytes:
        raise NotImplementedError

    async def close(self) -> None:
        """Release resources held across conversions."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    def _supported(self, file_name: str) -> bool:
        if not self.supported_formats:
            return True
        lowered = file_name.lower()
        return any(lowered.endswith(s) for s in self.supported_formats)

    def validate(self, conversion_input: ConversionInput) -> ValidationResult:
        errors = []
        if conversion_input.is_empty:
            errors.append("No input provided. Please provide content, file, or URL")

        f = conversion_input.file
        if f is not None:
            if f.size > self.max_file_size:
                errors.append(f"File size exceeds maximum limit of {self.max_file_size} bytes")
            if not self._supported(f.file_name):
                errors.append(
                    f"Unsupported file format. Supported formats: {', '.join(self.supported_formats)}")

        if conversion_input.files:
            total = sum(x.size for x in conversion_input.files)
            if total > self.max_file_size * MULTI_FILE_FACTOR:
                errors.append("Total file size exceeds maximum limit")
            for i, x in enumerate(conversion_input.files, 1):
                if not self._supported(x.file_name):
                    errors.append(f"File {i} has unsupported format")

        return ValidationResult(is_valid=not errors, errors=errors)

    async def execute(self, conversion_input: ConversionInput) -> ConversionResult:
        """Validate, convert and wrap the PDF with metadata.

        Browser errors keep their message verbatim; ``cause_code`` records
        their original code.
        """
        t0 = time.monotonic()
        log.info("Starting %s conversion", self.name)
        try:
            validation = self.validate(conversion_input)
            if not validation.is_valid:
                raise ConversionError(
                    f"Validation failed: {', '.join(validation.errors)}",
                    code=ErrorCode.INVALID_INPUT,
                    details={"errors": validation.errors},
                )
            pdf = await self.convert(conversion_input)
        except ConversionError as e:
            self._log_end(False, 0, None, t0, str(e))
            raise
        except RenderError as e:
            self._log_end(False, 0, None, t0, str(e))
            raise ConversionError(str(e), details=e.details, cause_code=e.code) from e
        except Exception as e:
            log.error(f"Conversion failed in {self.name}: {e}")
            self._log_end(False, 0, None, t0, str(e))
            raise ConversionError(str(e) or "Unknown conversion error") from e

        pages = count_pages(pdf)
        elapsed_ms = (time.monotonic() - t0) * 1000
        log.info("Completed %s conversion (%d bytes)", self.name, len(pdf))
        self._log_end(True, len(pdf), pages, t0, "")
        return ConversionResult(
            pdf=pdf,
            metadata=ConversionMetadata(
                size=len(pdf),
                generated_at=datetime.now(timezone.utc).isoformat(),
                processing_time_ms=round(elapsed_ms, 2),
                pages=pages,
            ),
        )

    def _log_end(self, ok: bool, size: int, pages: int | None, t0: float, error: str) -> None:
        if self.event_logger is None:
            return
        self.event_logger.log_conversion_end(
            self.name, ok, size, pages, (time.monotonic() - t0) * 1000, error)

    @staticmethod
    def get_content(conversion_input: ConversionInput) -> str:
        if conversion_input.content:
            return conversion_input.content
        if conversion_input.file is not None:
            return conversion_input.file.data.decode("utf-8", errors="replace")
        return ""


class BrowserConverter(BaseConverter):
    """A converter that renders HTML through its own browser session.

    The session is launched on first use, reused across conversions and
    closed by ``close()``.
    """

    def __init__(self, context=None, *, launch_options: LaunchOptions | None = None, event_logger=None):
        if context is None:
            from ..context import default_context

            context = default_context()
        super().__init__(event_logger=event_logger or context.event_logger)
        self.context = context
        self.launch_options = launch_options
        self._session: BrowserSession | None = None

    async def session(self) -> BrowserSession:
        if self._session is None or self._session.closed:
            self._session = await self.context.manager.launch(self.launch_options)
        return self._session

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None
            log.info("%s cleanup completed", self.name)

    async def render_html(self, html: str, options: PdfOptions, *, wait_until: str = "networkidle",
                          timeout_ms: int = 30000) -> bytes:
        """Load *html* into a fresh page and print it to PDF."""
        session = await self.session()
        async with open_page(session) as page:
            await page.set_content(html, wait_until=wait_until, timeout=timeout_ms)
            await page.evaluate("() => document.fonts.ready")
            return await page.pdf(**pdf_kwargs(options))


def pdf_kwargs(options: PdfOptions) -> dict:
    """Translate PdfOptions to ``Page.pdf`` keyword arguments."""
    kwargs = {
        "format": options.format,
        "landscape": options.landscape,
        "print_background": options.print_background,
        "scale": options.scale,
        "margin": options.margin.to_dict(),
        "prefer_css_page_size": options.prefer_css_page_size,
    }
    if options.display_header_footer:
        kwargs["display_header_footer"] = True
        kwargs["header_template"] = options.header_template or (
            '<div style="font-size: 10px; text-align: center; width: 100%;"></div>')
        kwargs["footer_template"] = options.footer_template or (
            '<div style="font-size: 10px; text-align: center; width: 100%;">'
            '<span class="pageNumber"></span> / <span class="totalPages"></span></div>')
    if options.page_ranges:
        kwargs["page_ranges"] = options.page_ranges
    return kwargs
