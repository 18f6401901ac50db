"""Conversion input/output contract and per-format option bags."""
import os
from dataclasses import dataclass, field, fields
from typing import Any

PAPER_FORMATS = ("A3", "A4", "A5", "Letter", "Legal", "Tabloid")

# CSS pixels at 96 DPI, portrait.
VIEWPORTS = {
    "A3": {"width": 1123, "height": 1587},
    "A4": {"width": 794, "height": 1123},
    "A5": {"width": 559, "height": 794},
    "Letter": {"width": 816, "height": 1056},
    "Legal": {"width": 816, "height": 1344},
    "Tabloid": {"width": 1056, "height": 1632},
}


@dataclass
class FileInput:
    data: bytes
    file_name: str
    mime_type: str = "application/octet-stream"

    @property
    def suffix(self) -> str:
        return os.path.splitext(self.file_name)[1].lower()

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class ConversionInput:
    """Exactly one of content/file/files/url is normally set."""
    content: str | None = None
    file: FileInput | None = None
    files: list[FileInput] = field(default_factory=list)
    url: str | None = None
    options: Any = None

    @property
    def is_empty(self) -> bool:
        return not (self.content or self.file or self.files or self.url)


@dataclass
class ConversionMetadata:
    size: int
    generated_at: str          # ISO-8601, UTC
    processing_time_ms: float
    pages: int | None = None


@dataclass
class ConversionResult:
    pdf: bytes
    metadata: ConversionMetadata


@dataclass
class ValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)


@dataclass
class Margins:
    top: str = "20mm"
    bottom: str = "20mm"
    left: str = "20mm"
    right: str = "20mm"

    def to_dict(self) -> dict:
        return {"top": self.top, "bottom": self.bottom, "left": self.left, "right": self.right}


@dataclass
class PdfOptions:
    """Page-level options shared by every browser-rendered format."""
    format: str = "A4"
    landscape: bool = False
    margin: Margins = field(default_factory=Margins)
    print_background: bool = True
    scale: float = 1.0
    display_header_footer: bool = False
    header_template: str = ""
    footer_template: str = ""
    page_ranges: str = ""
    prefer_css_page_size: bool = False


@dataclass
class HtmlOptions(PdfOptions):
    wait_until: str = "networkidle"
    wait_for: str = ""            # CSS selector (#id/.class) or milliseconds
    execute_script: str = ""
    credentials: dict[str, str] | None = None  # {"username": ..., "password": ...}
    ignore_https_errors: bool = False
    navigation_timeout_ms: int = 30000


@dataclass
class TextOptions(PdfOptions):
    font_size: int = 12
    font_family: str = "Helvetica"
    font_color: str = "#000000"
    line_height: float = 1.5
    alignment: str = "left"
    word_wrap: bool = True
    page_numbers: bool = False


@dataclass
class MarkdownOptions(PdfOptions):
    theme: str = "default"
    css: str = ""


@dataclass
class ImageOptions:
    format: str = "A4"
    landscape: bool = False
    margin_pt: float = 72            # 1 inch on every side
    fit: str = "contain"             # contain | cover | fill | scale-down
    position: str = "center"         # center | top | bottom
    images_per_page: int = 1         # grid of up to 9
    include_metadata: bool = False   # caption with file name and pixel size
    quality: int = 85                # JPEG quality of the embedded pages
    dpi: int = 150


@dataclass
class DocxOptions(PdfOptions):
    preserve_styles: bool = True
    preserve_images: bool = True
    preserve_links: bool = True
    fit_to_page: bool = True
    css: str = ""


@dataclass
class MergeOptions:
    order: list[int] | None = None                        # indexes into the input files
    page_ranges: dict[str, str] = field(default_factory=dict)  # file name -> "1-3,5"
    remove_metadata: bool = False
    compress: bool = False
    password: str = ""


def coerce_options(cls, options):
    """Build *cls* from None, an instance, or a plain dict (unknown keys ignored)."""
    if options is None:
        return cls()
    if isinstance(options, cls):
        return options
    if isinstance(options, dict):
        names = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in options.items() if k in names}
        if isinstance(kwargs.get("margin"), dict):
            kwargs["margin"] = Margins(**kwargs["margin"])
        return cls(**kwargs)
    raise TypeError(f"Expected {cls.__name__} or dict, got {type(options).__name__}")
