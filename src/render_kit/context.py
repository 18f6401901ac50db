"""Explicit process context wiring the browser subsystem together.

Build one ``RenderContext`` at process start and pass it to converters.
Tests build their own with fakes and call ``reset()`` between runs.
"""
import logging
import uuid

from .browser.bundled import BundledBrowser
from .browser.launcher import BrowserLauncher
from .browser.lifecycle import BrowserLifecycleManager
from .browser.locator import BrowserLocator
from .config import RenderConfig
from .system.commands import run_command
from .system.deps import DependencyInstaller
from .system.probe import SystemProbe
from .telemetry.logger import RenderEventLogger

log = logging.getLogger(__name__)


class RenderContext:
    """Owns the probe, installer, locator, launcher and lifecycle manager.

    Any component may be injected; the rest are built from *config*.
    """

    def __init__(
        self,
        config: RenderConfig | None = None,
        *,
        runner=run_command,
        probe: SystemProbe | None = None,
        installer: DependencyInstaller | None = None,
        locator: BrowserLocator | None = None,
        launcher: BrowserLauncher | None = None,
        bundled: BundledBrowser | None = None,
        event_logger: RenderEventLogger | None = None,
    ):
        self.config = config or RenderConfig.from_env()
        if event_logger is None and self.config.event_log_dir:
            event_logger = RenderEventLogger(uuid.uuid4().hex[:12], log_dir=self.config.event_log_dir)
        self.event_logger = event_logger

        self.probe = probe or SystemProbe(runner=runner)
        self.installer = installer or DependencyInstaller(runner=runner)
        if bundled is None and locator is None:
            bundled = BundledBrowser(self.config, runner=runner)
        self.bundled = bundled
        if locator is None:
            locator = BrowserLocator(bundled_resolver=bundled.resolve)
        self.locator = locator
        self.launcher = launcher or BrowserLauncher()
        if self.launcher.event_logger is None:
            self.launcher.event_logger = event_logger
        self.manager = BrowserLifecycleManager(
            self.config,
            probe=self.probe,
            installer=self.installer,
            locator=self.locator,
            launcher=self.launcher,
            bundled=self.bundled,
            event_logger=event_logger,
        )

    def reset(self) -> None:
        """Clear every cached value, including the system profile."""
        self.manager.reset(clear_profile=True)

    def close(self) -> None:
        if self.event_logger is not None:
            self.event_logger.close()


_default: RenderContext | None = None


def default_context() -> RenderContext:
    """Process-level context built from the environment on first use."""
    global _default
    if _default is None:
        _default = RenderContext()
    return _default


def reset_default_context() -> None:
    global _default
    if _default is not None:
        _default.reset()
        _default.close()
    _default = None
