"""Process-wide browser setup cache with single-flight semantics.

States: UNINITIALIZED -> INSTALLING -> RESOLVED(path) | FAILED(error).
A launch failure from RESOLVED drops back to UNINITIALIZED so the next
request re-probes instead of reusing a stale path. Concurrent setup
requests share one in-flight task; only that task mutates cached state.
"""
import asyncio
import logging
import os
import time
from dataclasses import dataclass, field
from enum import Enum

from ..config import RenderConfig
from ..errors import BrowserNotFoundError, LaunchError, RenderError
from ..system.deps import DependencyInstaller, InstallOutcome
from ..system.probe import SystemProbe, SystemProfile
from ..telemetry.diagnostics import SetupDiagnostics, capture_diagnostics
from .bundled import BundledBrowser
from .launcher import BrowserHandle, BrowserLauncher, BrowserSession, LaunchOptions, build_launch_args
from .locator import BrowserLocator, candidates_for

log = logging.getLogger(__name__)

WSL_ENV_DEFAULTS = {
    "DISPLAY": ":0",
    "PULSE_RUNTIME_PATH": "/mnt/wslg/runtime",
}


def apply_wsl_environment() -> dict[str, str]:
    """Set WSL display/audio defaults where unset. Returns what was applied."""
    applied = {}
    for key, value in WSL_ENV_DEFAULTS.items():
        if not os.environ.get(key):
            os.environ[key] = value
            applied[key] = value
    if applied:
        log.info("Applied WSL environment defaults: %s", ", ".join(applied))
    return applied


class LifecycleState(Enum):
    UNINITIALIZED = "uninitialized"
    INSTALLING = "installing"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass
class BrowserStatus:
    available: bool
    executable_path: str | None = None
    used_system_browser: bool = False
    used_bundled_browser: bool = False
    diagnostic: str = ""
    state: LifecycleState = LifecycleState.UNINITIALIZED
    details: SetupDiagnostics = field(default_factory=SetupDiagnostics)

    def to_dict(self) -> dict:
        return {
            "available": self.available,
            "executable_path": self.executable_path,
            "used_system_browser": self.used_system_browser,
            "used_bundled_browser": self.used_bundled_browser,
            "diagnostic": self.diagnostic,
            "state": self.state.value,
            "details": self.details.to_dict(),
        }


class BrowserLifecycleManager:
    def __init__(
        self,
        config: RenderConfig,
        *,
        probe: SystemProbe,
        installer: DependencyInstaller,
        locator: BrowserLocator,
        launcher: BrowserLauncher,
        bundled: BundledBrowser | None = None,
        event_logger=None,
    ):
        self.config = config
        self.probe = probe
        self.installer = installer
        self.locator = locator
        self.launcher = launcher
        self.bundled = bundled
        self.event_logger = event_logger

        self.state = LifecycleState.UNINITIALIZED
        self.executable_path: str | None = None
        self.source: str | None = None
        self.install_outcome: InstallOutcome | None = None
        self.last_error: Exception | None = None
        self._lock = asyncio.Lock()
        self._inflight: asyncio.Task | None = None

    @property
    def handle(self) -> BrowserHandle | None:
        """The resolved BrowserHandle, or None when unresolved."""
        if self.state is not LifecycleState.RESOLVED or not self.executable_path:
            return None
        profile = self.probe.cached
        args = tuple(build_launch_args(profile)) if profile else ()
        return BrowserHandle(self.executable_path, self.source != "bundled", args)

    async def get_or_setup(self, prefer_system_only: bool = False) -> str:
        """Detect, install dependencies and locate once; memoize the path.

        Concurrent callers await the same in-flight setup and receive the
        same path or the same exception.
        """
        if self.state is LifecycleState.RESOLVED and self.executable_path:
            return self.executable_path
        async with self._lock:
            if self.state is LifecycleState.RESOLVED and self.executable_path:
                return self.executable_path
            if self._inflight is None:
                task = asyncio.ensure_future(self._setup(prefer_system_only))
                task.add_done_callback(self._clear_inflight)
                self._inflight = task
            task = self._inflight
        return await asyncio.shield(task)

    def _clear_inflight(self, task: asyncio.Task) -> None:
        if self._inflight is task:
            self._inflight = None
        if not task.cancelled():
            # Mark the exception retrieved; every awaiter re-raises it.
            task.exception()

    async def _setup(self, prefer_system_only: bool) -> str:
        t0 = time.monotonic()
        self.state = LifecycleState.INSTALLING
        try:
            profile = await self.probe.detect()
            log.info("Setting up browser environment for %s", profile.label)
            if self.event_logger is not None:
                self.event_logger.log_setup_start(
                    profile.to_dict(), self.config.skip_browser_download, self.config.executable_path)
            await self._install_dependencies(profile)
            if self.config.apply_wsl_env and profile.is_wsl:
                apply_wsl_environment()
            path, source = await self._resolve(profile, prefer_system_only)
        except Exception as e:
            self.state = LifecycleState.FAILED
            self.executable_path = None
            self.source = None
            self.last_error = e
            log.error(f"Browser setup failed: {e}")
            self._log_setup_end(t0, str(e))
            raise

        self.state = LifecycleState.RESOLVED
        self.executable_path = path
        self.source = source
        self.last_error = None
        log.info("Browser resolved (%s): %s", source, path)
        self._log_setup_end(t0, "")
        return path

    async def _install_dependencies(self, profile: SystemProfile) -> None:
        if not self.config.install_dependencies:
            return
        if self.install_outcome is not None and self.install_outcome.succeeded:
            return
        self.install_outcome = await self.installer.install_dependencies(profile)
        if self.install_outcome.succeeded:
            log.info("System dependencies ready: %s", self.install_outcome.message)
        else:
            log.warning("System dependency installation had issues: %s", self.install_outcome.message)

    async def _resolve(self, profile: SystemProfile, prefer_system_only: bool) -> tuple[str, str]:
        pinned = self.locator.resolve_pinned(self.config.executable_path)
        if pinned:
            return pinned, "pinned"
        if profile.is_musl:
            log.info("Alpine/musl detected - using system Chromium only")
        prefer = prefer_system_only or self.config.skip_browser_download
        path = await self.locator.locate(profile, prefer_system_only=prefer)
        source = "system" if path in candidates_for(profile) else "bundled"
        return path, source

    def _log_setup_end(self, t0: float, error: str) -> None:
        if self.event_logger is None:
            return
        self.event_logger.log_setup_end(
            self.state.value, self.executable_path,
            self.install_outcome.to_dict() if self.install_outcome else None,
            error, time.monotonic() - t0,
        )

    async def launch(self, options: LaunchOptions | None = None) -> BrowserSession:
        """Resolve (once) and launch a new session owned by the caller."""
        options = options or LaunchOptions(
            timeout_ms=self.config.launch_timeout_ms,
            retry_attempts=self.config.launch_retries,
        )
        path = await self.get_or_setup()
        profile = await self.probe.detect()
        try:
            return await self.launcher.launch(path, profile, options, relocate=self._relocate)
        except LaunchError as e:
            self._invalidate(e)
            raise

    async def _relocate(self) -> str:
        profile = await self.probe.detect()
        path, source = await self._resolve(profile, False)
        log.info("Re-resolved browser (%s): %s", source, path)
        self.executable_path = path
        self.source = source
        return path

    def _invalidate(self, error: RenderError) -> None:
        log.warning("Launch failed; dropping cached browser path %s", self.executable_path)
        self.state = LifecycleState.UNINITIALIZED
        self.executable_path = None
        self.source = None
        self.last_error = error
        self.probe.reset()

    async def status(self) -> BrowserStatus:
        """Availability report. May re-probe; never installs or downloads."""
        try:
            profile = await self.probe.detect()
            if self.state is LifecycleState.RESOLVED and self.executable_path \
                    and self.locator.exists(self.executable_path):
                path, source = self.executable_path, self.source
            else:
                path, source = await self._peek(profile)
        except BrowserNotFoundError as e:
            diag = capture_diagnostics(self, e)
            return BrowserStatus(
                available=False, diagnostic=str(e), state=self.state, details=diag)

        diag = capture_diagnostics(self)
        diag.executable_path = path
        diag.source = source
        try:
            diag.dependencies_present = await self.installer.dependency_status(profile)
        except Exception as e:
            log.debug(f"Dependency status check failed: {e}")
        return BrowserStatus(
            available=True,
            executable_path=path,
            used_system_browser=source in ("system", "pinned"),
            used_bundled_browser=source == "bundled",
            diagnostic=diag.summary,
            state=self.state,
            details=diag,
        )

    async def _peek(self, profile: SystemProfile) -> tuple[str, str]:
        pinned = self.locator.resolve_pinned(self.config.executable_path)
        if pinned:
            return pinned, "pinned"
        if self.bundled is not None:
            peek = BrowserLocator(exists=self.locator.exists,
                                  bundled_resolver=self.bundled.resolve_without_download)
        else:
            peek = BrowserLocator(exists=self.locator.exists)
        path = await peek.locate(profile, prefer_system_only=self.config.skip_browser_download)
        self.locator.last_checked = list(peek.last_checked)
        return path, "system" if path in candidates_for(profile) else "bundled"

    def reset(self, *, clear_profile: bool = True) -> None:
        """Clear every cached value (path, install outcome, state, errors)."""
        self.state = LifecycleState.UNINITIALIZED
        self.executable_path = None
        self.source = None
        self.install_outcome = None
        self.last_error = None
        self._inflight = None
        if clear_profile:
            self.probe.reset()
        log.info("Browser setup cleaned up")
