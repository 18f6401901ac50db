"""Word (.docx) to PDF: python-docx reads the document, the browser typesets it.

Body paragraphs and tables are walked in document order and rebuilt as HTML.
Named Word styles map onto HTML elements (headings, quotes, code, lists);
direct run formatting becomes inline tags; embedded pictures become data URIs.
"""
import base64
import html
import io
import logging

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml.ns import qn
from docx.table import Table
from docx.text.hyperlink import Hyperlink
from docx.text.paragraph import Paragraph

from ..errors import ConversionError, ErrorCode
from .base import BrowserConverter
from .models import ConversionInput, DocxOptions, coerce_options

log = logging.getLogger(__name__)

BLOCK_STYLES = {
    "Title": "h1",
    "Subtitle": "h2",
    "Heading 1": "h1",
    "Heading 2": "h2",
    "Heading 3": "h3",
    "Heading 4": "h4",
    "Heading 5": "h5",
    "Heading 6": "h6",
    "Quote": "blockquote",
    "Intense Quote": "blockquote",
    "Code": "pre",
    "HTML Preformatted": "pre",
}

ALIGNMENTS = {
    WD_ALIGN_PARAGRAPH.CENTER: "center",
    WD_ALIGN_PARAGRAPH.RIGHT: "right",
    WD_ALIGN_PARAGRAPH.JUSTIFY: "justify",
}

DOCX_CSS = """
body {
  font-family: Calibri, Carlito, 'Segoe UI', 'Noto Sans', 'Noto Sans CJK KR', Arial, sans-serif;
  font-size: 11pt; line-height: 1.5; color: #000; margin: 0;
}
h1, h2, h3, h4, h5, h6 { margin: 18px 0 10px; line-height: 1.25; }
p { margin: 0 0 10px; }
blockquote { margin: 0 0 10px; padding: 0 1em; color: #555; border-left: 3px solid #ccc; }
pre { font-family: 'Courier New', monospace; background: #f6f8fa; padding: 8px; white-space: pre-wrap; }
table { border-collapse: collapse; margin: 0 0 10px; }
td, th { border: 1px solid #999; padding: 4px 8px; vertical-align: top; }
"""

FIT_CSS = """
img { max-width: 100%; height: auto; }
table { width: 100%; }
"""


def _style_name(item) -> str:
    try:
        return item.style.name if item.style is not None else ""
    except (KeyError, ValueError):
        return ""


def _list_tag(paragraph: Paragraph) -> str | None:
    name = _style_name(paragraph)
    if name.startswith("List Number"):
        return "ol"
    if name.startswith("List Bullet") or name == "List Paragraph":
        return "ul"
    if paragraph._p.pPr is not None and paragraph._p.pPr.numPr is not None:
        return "ul"
    return None


class DocxHtmlBuilder:
    """Turns one python-docx Document into an HTML body string."""

    def __init__(self, document, options: DocxOptions):
        self.document = document
        self.options = options
        self.images = 0

    def build(self) -> str:
        out: list[str] = []
        open_list: str | None = None
        for block in self.document.iter_inner_content():
            tag = _list_tag(block) if isinstance(block, Paragraph) else None
            if open_list and tag != open_list:
                out.append(f"</{open_list}>")
                open_list = None
            if tag and not open_list:
                out.append(f"<{tag}>")
                open_list = tag
            if isinstance(block, Table):
                out.append(self.table(block))
            elif tag:
                out.append(f"<li>{self.inline(block)}</li>")
            else:
                out.append(self.paragraph(block))
        if open_list:
            out.append(f"</{open_list}>")
        return "\n".join(out)

    def paragraph(self, paragraph: Paragraph) -> str:
        tag = BLOCK_STYLES.get(_style_name(paragraph), "p")
        style = ""
        align = ALIGNMENTS.get(paragraph.alignment) if self.options.preserve_styles else None
        if align:
            style = f' style="text-align: {align}"'
        content = self.inline(paragraph)
        if not content and tag == "p":
            return "<p>&nbsp;</p>"
        return f"<{tag}{style}>{content}</{tag}>"

    def table(self, table: Table) -> str:
        rows = []
        for row in table.rows:
            cells = []
            for cell in row.cells:
                inner = "<br>".join(self.inline(p) for p in cell.paragraphs)
                cells.append(f"<td>{inner}</td>")
            rows.append("<tr>" + "".join(cells) + "</tr>")
        return "<table>\n" + "\n".join(rows) + "\n</table>"

    def inline(self, paragraph: Paragraph) -> str:
        parts = []
        for item in paragraph.iter_inner_content():
            if isinstance(item, Hyperlink):
                text = "".join(self.run(r) for r in item.runs)
                if self.options.preserve_links and item.address:
                    href = html.escape(item.url, quote=True)
                    parts.append(f'<a href="{href}">{text}</a>')
                else:
                    parts.append(text)
            else:
                parts.append(self.run(item))
        return "".join(parts)

    def run(self, run) -> str:
        text = html.escape(run.text).replace("\n", "<br>")
        if self.options.preserve_styles and text:
            char_style = _style_name(run)
            if run.bold or char_style == "Strong":
                text = f"<strong>{text}</strong>"
            if run.italic or char_style == "Emphasis":
                text = f"<em>{text}</em>"
            if run.underline:
                text = f"<u>{text}</u>"
            if run.font.strike:
                text = f"<s>{text}</s>"
            if run.font.superscript:
                text = f"<sup>{text}</sup>"
            elif run.font.subscript:
                text = f"<sub>{text}</sub>"
        if self.options.preserve_images:
            text += "".join(self.pictures(run))
        return text

    def pictures(self, run):
        for blip in run._r.xpath(".//a:blip"):
            rid = blip.get(qn("r:embed"))
            part = self.document.part.related_parts.get(rid) if rid else None
            if part is None:
                continue
            data = base64.b64encode(part.blob).decode("ascii")
            self.images += 1
            yield f'<img src="data:{part.content_type};base64,{data}" alt="image {self.images}">'


def docx_to_html(data: bytes, options: DocxOptions) -> str:
    """Full HTML document for a .docx buffer. Raises ConversionError if unreadable."""
    try:
        document = Document(io.BytesIO(data))
    except Exception as e:
        raise ConversionError(f"Could not read Word document: {e}",
                              code=ErrorCode.UNSUPPORTED_FORMAT) from e
    builder = DocxHtmlBuilder(document, options)
    body = builder.build()
    title = html.escape(document.core_properties.title or "Document")
    css = DOCX_CSS + (FIT_CSS if options.fit_to_page else "") + (options.css or "")
    log.debug("Rebuilt Word document as HTML (%d image(s))", builder.images)
    return (
        "<!DOCTYPE html>\n<html>\n<head>\n"
        "<meta charset=\"UTF-8\">\n"
        f"<title>{title}</title>\n"
        f"<style>{css}</style>\n</head>\n<body>\n"
        f"{body}\n"
        "</body>\n</html>"
    )


class DocxConverter(BrowserConverter):
    name = "DocxConverter"
    supported_formats = (".docx",)
    max_file_size = 25 * 1024 * 1024

    async def convert(self, conversion_input: ConversionInput) -> bytes:
        if conversion_input.file is None:
            raise ConversionError("A .docx file is required", code=ErrorCode.MISSING_FILE)
        options = coerce_options(DocxOptions, conversion_input.options)
        html_doc = docx_to_html(conversion_input.file.data, options)
        return await self.render_html(html_doc, options, wait_until="load")
