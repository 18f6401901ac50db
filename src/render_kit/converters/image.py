"""Images to PDF, composed page by page with Pillow. No browser involved."""
import asyncio
import io
import logging

from PIL import Image, ImageDraw, ImageFont, ImageOps

from ..errors import ConversionError, ErrorCode
from .base import BaseConverter
from .models import ConversionInput, FileInput, ImageOptions, coerce_options

log = logging.getLogger(__name__)

# Portrait page sizes in PostScript points (1/72 inch).
PAGE_SIZES_PT = {
    "A3": (842, 1191),
    "A4": (595, 842),
    "A5": (420, 595),
    "Letter": (612, 792),
    "Legal": (612, 1008),
    "Tabloid": (792, 1224),
}

FIT_MODES = ("contain", "cover", "fill", "scale-down")
POSITIONS = ("center", "top", "bottom")
MAX_IMAGES_PER_PAGE = 9
GRID_PADDING = 0.9
CAPTION_PT = 8
CAPTION_COLOR = "#666666"


def grid_for(count: int) -> tuple[int, int]:
    """(rows, cols) for *count* images on one page."""
    if count <= 1:
        return 1, 1
    if count == 2:
        return 1, 2
    if count <= 4:
        return 2, 2
    if count <= 6:
        return 2, 3
    return 3, 3


def page_size_px(options: ImageOptions) -> tuple[int, int]:
    width, height = PAGE_SIZES_PT.get(options.format, PAGE_SIZES_PT["A4"])
    if options.landscape:
        width, height = height, width
    scale = options.dpi / 72
    return round(width * scale), round(height * scale)


def load_image(data: bytes) -> Image.Image:
    """Decode, apply EXIF orientation and flatten transparency onto white."""
    with Image.open(io.BytesIO(data)) as img:
        img = ImageOps.exif_transpose(img)
        if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
            rgba = img.convert("RGBA")
            flat = Image.new("RGB", rgba.size, "white")
            flat.paste(rgba, mask=rgba.getchannel("A"))
            return flat
        return img.convert("RGB")


def fit_image(img: Image.Image, box: tuple[int, int], fit: str) -> Image.Image:
    """Resize *img* into *box* following a CSS ``object-fit`` style mode."""
    box = (max(1, box[0]), max(1, box[1]))
    if fit == "fill":
        return img.resize(box, Image.Resampling.LANCZOS)
    if fit == "cover":
        return ImageOps.fit(img, box, Image.Resampling.LANCZOS)
    if fit == "scale-down" and img.width <= box[0] and img.height <= box[1]:
        return img.copy()
    return ImageOps.contain(img, box, Image.Resampling.LANCZOS)


def place(cell: tuple[int, int, int, int], size: tuple[int, int], position: str) -> tuple[int, int]:
    left, top, width, height = cell
    x = left + (width - size[0]) // 2
    if position == "top":
        y = top
    elif position == "bottom":
        y = top + height - size[1]
    else:
        y = top + (height - size[1]) // 2
    return x, y


class ImageConverter(BaseConverter):
    name = "ImageConverter"
    supported_formats = (".jpg", ".jpeg", ".png", ".gif", ".bmp", ".tiff", ".tif", ".webp")
    max_file_size = 20 * 1024 * 1024

    async def convert(self, conversion_input: ConversionInput) -> bytes:
        options = coerce_options(ImageOptions, conversion_input.options)
        files = list(conversion_input.files)
        if not files and conversion_input.file is not None:
            files = [conversion_input.file]
        if not files:
            raise ConversionError("No image files provided", code=ErrorCode.MISSING_FILE)
        if options.fit not in FIT_MODES:
            raise ConversionError(f"Unknown fit mode {options.fit!r}", code=ErrorCode.INVALID_INPUT)
        return await asyncio.to_thread(self.render, files, options)

    def render(self, files: list[FileInput], options: ImageOptions) -> bytes:
        loaded = []
        for f in files:
            try:
                loaded.append((f, load_image(f.data)))
            except (OSError, Image.DecompressionBombError) as e:
                # One unreadable image should not sink the whole document.
                log.error(f"Failed to process image {f.file_name}: {e}")
        if not loaded:
            raise ConversionError("None of the images could be read",
                                  code=ErrorCode.UNSUPPORTED_FORMAT)

        per_page = min(max(1, options.images_per_page), MAX_IMAGES_PER_PAGE)
        pages = [
            self.compose_page(loaded[i:i + per_page], per_page, options)
            for i in range(0, len(loaded), per_page)
        ]
        buf = io.BytesIO()
        pages[0].save(
            buf, "PDF", save_all=True, append_images=pages[1:],
            resolution=options.dpi, quality=options.quality,
            title="Images to PDF", creator="render-kit",
        )
        log.info("Composed %d image(s) onto %d page(s)", len(loaded), len(pages))
        return buf.getvalue()

    def compose_page(self, items: list[tuple[FileInput, Image.Image]], per_page: int,
                     options: ImageOptions) -> Image.Image:
        width, height = page_size_px(options)
        scale = options.dpi / 72
        margin = round(options.margin_pt * scale)
        caption = round((CAPTION_PT + 6) * scale) if options.include_metadata else 0
        rows, cols = grid_for(per_page)
        cell_w = max(1, (width - 2 * margin) // cols)
        cell_h = max(1, (height - 2 * margin) // rows)

        page = Image.new("RGB", (width, height), "white")
        draw = ImageDraw.Draw(page)
        font = ImageFont.load_default(size=round(CAPTION_PT * scale))
        for i, (f, img) in enumerate(items):
            row, col = divmod(i, cols)
            cell = (margin + col * cell_w, margin + row * cell_h, cell_w, cell_h - caption)
            box = (cell[2], cell[3])
            if per_page > 1:
                box = (int(box[0] * GRID_PADDING), int(box[1] * GRID_PADDING))
            fitted = fit_image(img, box, options.fit)
            x, y = place(cell, fitted.size, options.position)
            page.paste(fitted, (x, y))
            if options.include_metadata:
                info = f"{f.file_name} - {img.width}x{img.height}px"
                text_w = draw.textlength(info, font=font)
                draw.text((cell[0] + (cell_w - text_w) / 2, y + fitted.height + 5 * scale),
                          info, fill=CAPTION_COLOR, font=font)
        return page
