"""Tests for the browser-backed converters and their HTML builders."""
from unittest.mock import MagicMock

import pytest
from fakes import CHROME, DEBIAN, FakeInstaller, FakeLaunch, FakeProbe, SleepRecorder, make_browser, make_page, make_pdf

from render_kit.browser.launcher import BrowserLauncher, LaunchOptions
from render_kit.browser.locator import BrowserLocator
from render_kit.config import RenderConfig
from render_kit.context import RenderContext
from render_kit.converters import (
    ConversionInput,
    FileInput,
    HtmlConverter,
    ImageConverter,
    MarkdownConverter,
    PdfMerger,
    TextConverter,
    get_converter,
)
from render_kit.converters.base import count_pages, pdf_kwargs
from render_kit.converters.html import ensure_document, normalize_wait_until
from render_kit.converters.markdown import DARK_CSS, markdown_to_html
from render_kit.converters.models import HtmlOptions, MarkdownOptions, PdfOptions, TextOptions, coerce_options
from render_kit.converters.text import text_to_html
from render_kit.errors import ConversionError, ErrorCode


def _context(launch_fn=None, present=(CHROME,)):
    return RenderContext(
        RenderConfig(browsers_path="/tmp/render-kit-browsers"),
        probe=FakeProbe(DEBIAN),
        installer=FakeInstaller(),
        locator=BrowserLocator(exists=lambda p: p in present),
        launcher=BrowserLauncher(launch_fn=launch_fn or FakeLaunch(), exists=lambda p: True,
                                 sleep=SleepRecorder()),
    )


def _converter(cls, pages=1, **kwargs):
    page = make_page(make_pdf(pages))
    launch_fn = FakeLaunch(browser=make_browser(page))
    return cls(_context(launch_fn), **kwargs), page, launch_fn


# ── HTML helpers ────────────────────────────────────────────────────────────

def test_ensure_document_wraps_fragments():
    html = ensure_document("<p>hi</p>")
    assert html.startswith("<!DOCTYPE html>")
    assert '<meta charset="UTF-8">' in html
    assert 'name="viewport"' in html
    assert "<p>hi</p>" in html


def test_ensure_document_inserts_missing_metas_into_head():
    html = ensure_document("<html><head><title>t</title></head><body>x</body></html>")
    assert html.index('<meta charset="UTF-8">') < html.index("<title>")
    assert html.count("<head") == 1


def test_ensure_document_adds_head_when_absent():
    html = ensure_document('<html lang="en"><body>x</body></html>')
    assert '<html lang="en">\n<head>' in html


def test_ensure_document_leaves_complete_documents():
    doc = ('<html><head><meta charset="utf-8"><meta name="viewport" content="width=1">'
           '</head><body></body></html>')
    assert ensure_document(doc) == doc


def test_normalize_wait_until():
    assert normalize_wait_until("networkidle0") == "networkidle"
    assert normalize_wait_until("networkidle2") == "networkidle"
    assert normalize_wait_until("load") == "load"
    assert normalize_wait_until("bogus") == "networkidle"


def test_pdf_kwargs_header_footer_defaults():
    kwargs = pdf_kwargs(PdfOptions(display_header_footer=True, page_ranges="1-2"))
    assert kwargs["display_header_footer"] is True
    assert "pageNumber" in kwargs["footer_template"]
    assert kwargs["page_ranges"] == "1-2"
    assert kwargs["margin"] == {"top": "20mm", "bottom": "20mm", "left": "20mm", "right": "20mm"}

    plain = pdf_kwargs(PdfOptions())
    assert "display_header_footer" not in plain
    assert "page_ranges" not in plain


def test_coerce_options():
    opts = coerce_options(HtmlOptions, {"format": "Letter", "margin": {"top": "1in"}, "unknown": 1})
    assert opts.format == "Letter"
    assert opts.margin.top == "1in"
    assert opts.margin.bottom == "20mm"
    assert isinstance(coerce_options(TextOptions, None), TextOptions)
    with pytest.raises(TypeError):
        coerce_options(TextOptions, "A4")


def test_text_to_html_escapes_and_styles():
    html = text_to_html("<script>alert(1)</script>", TextOptions(font_family="Courier", alignment="diagonal"))
    assert "&lt;script&gt;" in html
    assert "<script>" not in html
    assert "Courier New" in html
    assert "text-align: left" in html


def test_markdown_to_html_tables_and_theme():
    md = "# Title\n\n| a | b |\n|---|---|\n| 1 | 2 |\n\n```\ncode\n```\n"
    html = markdown_to_html(md, MarkdownOptions(theme="dark", css="h1 { color: red; }"))
    assert "<table>" in html
    assert "<pre><code>" in html
    assert '<h1 id="title">Title</h1>' in html
    assert DARK_CSS in html
    assert "h1 { color: red; }" in html


def test_count_pages():
    assert count_pages(make_pdf(3)) == 3
    assert count_pages(b"not a pdf") is None


# ── converter execution ─────────────────────────────────────────────────────

async def test_html_content_conversion():
    converter, page, launch_fn = _converter(HtmlConverter, pages=2)
    result = await converter.execute(ConversionInput(content="<h1>Report</h1>"))

    assert result.metadata.pages == 2
    assert result.metadata.size == len(result.pdf)
    assert result.metadata.generated_at.endswith("+00:00")
    html = page.set_content.await_args.args[0]
    assert "<h1>Report</h1>" in html and '<meta charset="UTF-8">' in html
    page.set_viewport_size.assert_awaited_once_with({"width": 794, "height": 1123})
    page.close.assert_awaited_once()


async def test_html_url_with_credentials_and_wait():
    converter, page, launch_fn = _converter(HtmlConverter)
    options = {"credentials": {"username": "u", "password": "p"}, "wait_for": "#ready",
               "execute_script": "window.scrollTo(0, 0)", "wait_until": "networkidle0"}
    await converter.execute(ConversionInput(url="https://example.com/report", options=options))

    page.goto.assert_awaited_once()
    assert page.goto.await_args.kwargs["wait_until"] == "networkidle"
    new_page = launch_fn.browser.new_page.await_args.kwargs
    assert new_page["http_credentials"] == {"username": "u", "password": "p"}
    page.wait_for_selector.assert_awaited_once()
    assert page.evaluate.await_args_list[0].args[0] == "window.scrollTo(0, 0)"


async def test_html_wait_for_milliseconds():
    converter, page, _ = _converter(HtmlConverter)
    await converter.execute(ConversionInput(content="<p>x</p>", options=HtmlOptions(wait_for="250")))
    page.wait_for_timeout.assert_awaited_once_with(250)


async def test_session_is_reused_and_closed():
    converter, page, launch_fn = _converter(HtmlConverter)
    async with converter:
        await converter.execute(ConversionInput(content="a"))
        await converter.execute(ConversionInput(content="b"))
    assert len(launch_fn.calls) == 1
    launch_fn.browser.close.assert_awaited_once()


async def test_text_conversion_page_numbers():
    converter, page, _ = _converter(TextConverter)
    options = TextOptions(page_numbers=True)
    result = await converter.execute(ConversionInput(file=FileInput(b"line 1\nline 2", "notes.txt"),
                                                     options=options))
    assert result.metadata.pages == 1
    assert page.pdf.await_args.kwargs["display_header_footer"] is True
    assert options.display_header_footer is False
    assert "line 1\nline 2" in page.set_content.await_args.args[0]


async def test_markdown_conversion():
    converter, page, _ = _converter(MarkdownConverter)
    await converter.execute(ConversionInput(content="**bold**"))
    assert "<strong>bold</strong>" in page.set_content.await_args.args[0]


async def test_empty_input_is_invalid():
    converter, _, launch_fn = _converter(HtmlConverter)
    with pytest.raises(ConversionError) as exc_info:
        await converter.execute(ConversionInput())
    assert exc_info.value.code is ErrorCode.INVALID_INPUT
    assert launch_fn.calls == []


async def test_unsupported_and_oversized_files():
    converter, _, _ = _converter(TextConverter)
    result = converter.validate(ConversionInput(file=FileInput(b"x" * (converter.max_file_size + 1),
                                                               "bin.exe")))
    assert not result.is_valid
    assert len(result.errors) == 2


async def test_launch_failure_message_is_verbatim():
    raw = "Failed to launch chromium: libgbm.so.1: cannot open shared object file"
    launch_fn = FakeLaunch(fail_always=RuntimeError(raw))
    converter = HtmlConverter(_context(launch_fn),
                              launch_options=LaunchOptions(retry_attempts=2, backoff_seconds=0))
    events = MagicMock()
    converter.event_logger = events

    with pytest.raises(ConversionError) as exc_info:
        await converter.execute(ConversionInput(content="<p>x</p>"))

    err = exc_info.value
    assert raw in str(err)
    assert str(err).startswith("Failed to launch browser")
    assert err.cause_code is ErrorCode.LAUNCH_FAILED
    assert events.log_conversion_end.call_args[0][1] is False


async def test_browser_not_found_surfaces_code():
    converter = HtmlConverter(_context(present=()))
    with pytest.raises(ConversionError) as exc_info:
        await converter.execute(ConversionInput(content="x"))
    assert exc_info.value.cause_code is ErrorCode.BROWSER_NOT_FOUND
    assert "No suitable Chromium" in str(exc_info.value)


async def test_unexpected_errors_are_wrapped():
    converter, page, _ = _converter(HtmlConverter)
    page.pdf.side_effect = ValueError("page crashed")
    with pytest.raises(ConversionError) as exc_info:
        await converter.execute(ConversionInput(content="x"))
    assert str(exc_info.value) == "page crashed"
    assert exc_info.value.code is ErrorCode.CONVERSION_FAILED
    assert isinstance(exc_info.value.__cause__, ValueError)


def test_get_converter():
    ctx = _context()
    assert isinstance(get_converter("htmlToPdf", ctx), HtmlConverter)
    assert get_converter("textToPdf", ctx).context is ctx
    assert get_converter("docxToPdf", ctx).context is ctx
    assert isinstance(get_converter("imageToPdf", ctx), ImageConverter)
    assert isinstance(get_converter("mergePdfs", ctx), PdfMerger)
    with pytest.raises(ValueError):
        get_converter("pptxToPdf", ctx)
