"""Plain text to PDF, typeset as a styled HTML document."""
import html
from dataclasses import replace

from .base import BrowserConverter
from .models import ConversionInput, TextOptions, coerce_options

FONT_STACKS = {
    "Helvetica": "Helvetica, Arial, sans-serif",
    "Arial": "Arial, Helvetica, sans-serif",
    "Times-Roman": "'Times New Roman', Times, serif",
    "Courier": "'Courier New', Courier, monospace",
}

ALIGNMENTS = ("left", "center", "right", "justify")


def text_to_html(text: str, options: TextOptions) -> str:
    font = FONT_STACKS.get(options.font_family, options.font_family)
    align = options.alignment if options.alignment in ALIGNMENTS else "left"
    white_space = "pre-wrap" if options.word_wrap else "pre"
    return (
        "<!DOCTYPE html>\n<html>\n<head>\n<meta charset=\"UTF-8\">\n<style>\n"
        f"body {{ margin: 0; font-family: {font}; font-size: {options.font_size}px; "
        f"color: {options.font_color}; line-height: {options.line_height}; }}\n"
        f"pre {{ margin: 0; font-family: inherit; white-space: {white_space}; "
        f"word-wrap: break-word; text-align: {align}; }}\n"
        "</style>\n</head>\n<body>\n"
        f"<pre>{html.escape(text)}</pre>\n"
        "</body>\n</html>"
    )


class TextConverter(BrowserConverter):
    name = "TextConverter"
    supported_formats = (".txt", ".text", ".log")

    async def convert(self, conversion_input: ConversionInput) -> bytes:
        options = coerce_options(TextOptions, conversion_input.options)
        if options.page_numbers and not options.display_header_footer:
            options = replace(options, display_header_footer=True)
        return await self.render_html(text_to_html(self.get_content(conversion_input), options),
                                      options, wait_until="load")
