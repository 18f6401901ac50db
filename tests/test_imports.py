"""Smoke tests: public entry points are importable."""


def test_root_imports():
    from render_kit import (
        BrowserLifecycleManager,
        BrowserSession,
        LaunchOptions,
        RenderConfig,
        RenderContext,
        default_context,
        open_browser,
    )
    assert callable(BrowserLifecycleManager)
    assert callable(BrowserSession)
    assert callable(LaunchOptions)
    assert callable(RenderConfig)
    assert callable(RenderContext)
    assert callable(default_context)
    assert callable(open_browser)


def test_system_imports():
    from render_kit.system import DependencyInstaller, SystemProbe, run_command, majority_succeeded
    assert callable(DependencyInstaller)
    assert callable(SystemProbe)
    assert callable(run_command)
    assert majority_succeeded(2, 0)


def test_browser_imports():
    from render_kit.browser import BrowserLocator, BrowserLauncher, BundledBrowser, build_launch_args
    assert callable(BrowserLocator)
    assert callable(BrowserLauncher)
    assert callable(BundledBrowser)
    assert callable(build_launch_args)


def test_telemetry_imports():
    from render_kit.telemetry import RenderEventLogger, capture_diagnostics, save_diagnostics
    assert callable(RenderEventLogger)
    assert callable(capture_diagnostics)
    assert callable(save_diagnostics)


def test_converter_registry():
    from render_kit.converters import CONVERTERS, DocxConverter, HtmlConverter, ImageConverter, PdfMerger
    assert CONVERTERS["htmlToPdf"] is HtmlConverter
    assert CONVERTERS["docxToPdf"] is DocxConverter
    assert CONVERTERS["imageToPdf"] is ImageConverter
    assert CONVERTERS["mergePdfs"] is PdfMerger
    assert set(CONVERTERS) == {
        "htmlToPdf", "textToPdf", "markdownToPdf", "docxToPdf", "imageToPdf", "mergePdfs"}
