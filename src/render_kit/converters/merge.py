"""Merge several PDFs into one with pypdf. No browser involved."""
import io
import logging

from pypdf import PdfReader, PdfWriter

from ..errors import ConversionError, ErrorCode
from .base import BaseConverter
from .models import ConversionInput, MergeOptions, ValidationResult, coerce_options

log = logging.getLogger(__name__)


def parse_page_ranges(ranges: str, page_count: int) -> list[int]:
    """Zero-based page indexes for a "1-3,5" style string, in order, without repeats.

    Out-of-range and malformed parts are skipped. An empty string means every page.
    """
    if not ranges or not ranges.strip():
        return list(range(page_count))
    out: list[int] = []
    for part in ranges.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            if "-" in part:
                start_s, end_s = part.split("-", 1)
                start, end = int(start_s), int(end_s)
            else:
                start = end = int(part)
        except ValueError:
            log.warning(f"Ignoring malformed page range {part!r}")
            continue
        for n in range(max(start, 1), min(end, page_count) + 1):
            if n - 1 not in out:
                out.append(n - 1)
    return out


class PdfMerger(BaseConverter):
    name = "PdfMerger"
    supported_formats = (".pdf",)
    max_file_size = 50 * 1024 * 1024

    def validate(self, conversion_input: ConversionInput) -> ValidationResult:
        result = super().validate(conversion_input)
        if len(conversion_input.files) < 2:
            result.errors.append("At least two PDF files are required for merging")
            result.is_valid = False
        return result

    async def convert(self, conversion_input: ConversionInput) -> bytes:
        options = coerce_options(MergeOptions, conversion_input.options)
        files = conversion_input.files
        order = options.order if options.order is not None else list(range(len(files)))

        writer = PdfWriter()
        first_metadata = None
        for index in order:
            if not 0 <= index < len(files):
                raise ConversionError(f"Merge order index {index} is out of range",
                                      code=ErrorCode.INVALID_INPUT)
            item = files[index]
            try:
                reader = PdfReader(io.BytesIO(item.data))
                page_count = len(reader.pages)
            except Exception as e:
                raise ConversionError(f"Could not read {item.file_name}: {e}",
                                      code=ErrorCode.UNSUPPORTED_FORMAT) from e
            if first_metadata is None and reader.metadata:
                first_metadata = {k: str(v) for k, v in reader.metadata.items()}
            indexes = parse_page_ranges(options.page_ranges.get(item.file_name, ""), page_count)
            for i in indexes:
                writer.add_page(reader.pages[i])
            log.info("Added %d page(s) from %s", len(indexes), item.file_name)

        if not options.remove_metadata and first_metadata:
            writer.add_metadata(first_metadata)
        if options.compress:
            for page in writer.pages:
                page.compress_content_streams()
        if options.password:
            writer.encrypt(options.password, algorithm="AES-256")

        buf = io.BytesIO()
        writer.write(buf)
        return buf.getvalue()
