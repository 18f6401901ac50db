"""render-kit: headless Chromium acquisition and document-to-PDF conversion.

Locates, installs and launches a system or bundled Chromium across Windows,
macOS and Linux (glibc and musl), and converts HTML, text and Markdown to PDF
through it. PDFs can be merged without a browser.
"""
from .config import RenderConfig  # noqa: F401
from .context import RenderContext, default_context  # noqa: F401
from .errors import (  # noqa: F401
    ErrorCode,
    RenderError,
    BrowserNotFoundError,
    LaunchError,
    ConversionError,
)
from .browser import BrowserLifecycleManager, BrowserSession, LaunchOptions, open_browser  # noqa: F401
