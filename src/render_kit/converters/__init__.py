"""converters: per-format PDF producers built on the browser subsystem."""
from .models import (  # noqa: F401
    ConversionInput,
    ConversionResult,
    ConversionMetadata,
    DocxOptions,
    FileInput,
    HtmlOptions,
    ImageOptions,
    MarkdownOptions,
    MergeOptions,
    PdfOptions,
    TextOptions,
    ValidationResult,
)
from .base import BaseConverter, BrowserConverter  # noqa: F401
from .html import HtmlConverter  # noqa: F401
from .text import TextConverter  # noqa: F401
from .markdown import MarkdownConverter  # noqa: F401
from .docx import DocxConverter  # noqa: F401
from .image import ImageConverter  # noqa: F401
from .merge import PdfMerger  # noqa: F401

CONVERTERS = {
    "htmlToPdf": HtmlConverter,
    "textToPdf": TextConverter,
    "markdownToPdf": MarkdownConverter,
    "docxToPdf": DocxConverter,
    "imageToPdf": ImageConverter,
    "mergePdfs": PdfMerger,
}


def get_converter(conversion_type: str, context=None):
    """Instantiate the converter registered for *conversion_type*."""
    try:
        cls = CONVERTERS[conversion_type]
    except KeyError:
        raise ValueError(f"Unknown conversion type {conversion_type!r}") from None
    if issubclass(cls, BrowserConverter):
        return cls(context)
    return cls()
