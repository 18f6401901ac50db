"""Markdown to PDF via the ``markdown`` library and a themed HTML shell."""
import markdown

from .base import BrowserConverter
from .models import ConversionInput, MarkdownOptions, coerce_options

MARKDOWN_EXTENSIONS = ["tables", "fenced_code", "toc", "sane_lists", "attr_list"]

BASE_CSS = """
* { box-sizing: border-box; }
body {
  font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, 'Noto Sans',
               'Helvetica Neue', Arial, sans-serif;
  line-height: 1.6; color: #333; background: white; margin: 0; padding: 40px;
}
h1, h2, h3, h4, h5, h6 { margin: 24px 0 16px; font-weight: 600; line-height: 1.25; }
h1, h2 { border-bottom: 1px solid #eaecef; padding-bottom: .3em; }
p, ul, ol, blockquote, pre, table { margin: 0 0 16px; }
blockquote { color: #6a737d; border-left: .25em solid #dfe2e5; padding: 0 1em; }
code { background: rgba(27,31,35,.05); border-radius: 3px; padding: .2em .4em; font-size: 85%; }
pre { background: #f6f8fa; border-radius: 3px; padding: 16px; overflow: auto; }
pre code { background: transparent; padding: 0; }
table { border-collapse: collapse; width: 100%; }
table th, table td { border: 1px solid #dfe2e5; padding: 6px 13px; }
table tr:nth-child(2n) { background: #f6f8fa; }
img { max-width: 100%; }
hr { height: .25em; background: #e1e4e8; border: 0; }
a { color: #0366d6; text-decoration: none; }
"""

DARK_CSS = """
body { background: #1e1e1e; color: #d4d4d4; }
h1, h2, h3, h4, h5, h6 { color: #e0e0e0; }
h1, h2 { border-bottom-color: #333; }
blockquote { color: #999; border-left-color: #444; }
code { background: rgba(255,255,255,.1); color: #e0e0e0; }
pre { background: #2d2d2d; color: #d4d4d4; }
table th, table td { border-color: #444; }
table tr:nth-child(2n) { background: #2a2a2a; }
table th { background: #333; }
hr { background: #444; }
a { color: #58a6ff; }
"""

MINIMAL_CSS = """
body { font-family: Georgia, serif; line-height: 1.8; color: #2c3e50; padding: 60px 40px; }
.markdown-body { max-width: 700px; margin: 0 auto; }
h1, h2, h3, h4, h5, h6 { margin: 30px 0 20px; font-weight: normal; border: 0; }
h1 { font-size: 2.5em; }
h2 { font-size: 2em; }
"""

THEMES = {
    "default": BASE_CSS,
    "github": BASE_CSS,
    "dark": BASE_CSS + DARK_CSS,
    "minimal": BASE_CSS + MINIMAL_CSS,
}


def markdown_to_html(text: str, options: MarkdownOptions) -> str:
    body = markdown.markdown(text, extensions=MARKDOWN_EXTENSIONS)
    css = THEMES.get(options.theme, BASE_CSS) + (options.css or "")
    return (
        "<!DOCTYPE html>\n<html>\n<head>\n"
        "<meta charset=\"UTF-8\">\n"
        "<meta name=\"viewport\" content=\"width=device-width, initial-scale=1.0\">\n"
        f"<style>{css}</style>\n</head>\n<body>\n"
        f"<div class=\"markdown-body\">\n{body}\n</div>\n"
        "</body>\n</html>"
    )


class MarkdownConverter(BrowserConverter):
    name = "MarkdownConverter"
    supported_formats = (".md", ".markdown")

    async def convert(self, conversion_input: ConversionInput) -> bytes:
        options = coerce_options(MarkdownOptions, conversion_input.options)
        html = markdown_to_html(self.get_content(conversion_input), options)
        return await self.render_html(html, options)
