"""Headless Chromium launch with platform-tuned flags, retries and fallback.

The retry loop is an explicit state machine:
ATTEMPTING(n) -> SUCCESS | ATTEMPTING(n+1) | EXHAUSTED.
After exhaustion, one extra attempt without a forced executable lets
Playwright use its own default resolution (skipped on musl).
"""
import asyncio
import logging
import os
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable

from ..errors import LaunchError, RenderError
from ..system.probe import Platform, SystemProfile
from .remediation import remediation_steps

log = logging.getLogger(__name__)

# Required for containers; common to every platform.
BASELINE_ARGS = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--no-first-run",
    "--no-zygote",
    "--single-process",
    "--disable-default-apps",
    "--disable-popup-blocking",
    "--disable-translate",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
    "--disable-ipc-flooding-protection",
)

WINDOWS_ARGS = (
    "--virtual-time-budget=5000",
    "--single-process",
    "--disable-gpu-sandbox",
)

WSL_ARGS = (
    "--virtual-time-budget=5000",
    "--no-zygote",
    "--single-process",
)

# Audio and GPU subsystems are a common crash source on minimal musl images.
MUSL_ARGS = (
    "--disable-features=AudioServiceOutOfProcess,AudioServiceSandbox,VizDisplayCompositor",
    "--disable-audio-output",
    "--disable-audio-input",
    "--mute-audio",
    "--no-audio",
    "--disable-web-audio",
    "--disable-speech-api",
    "--disable-speech-synthesis",
    "--disable-speech-dispatcher",
    "--disable-voice-input",
    "--use-gl=swiftshader",
    "--disable-gpu-sandbox",
    "--disable-background-networking",
    "--disable-client-side-phishing-detection",
    "--disable-component-update",
    "--disable-domain-reliability",
    "--disable-hang-monitor",
    "--disable-notifications",
    "--disable-print-preview",
    "--disable-prompt-on-repost",
    "--disable-sync",
    "--disable-site-isolation-trials",
    "--no-default-browser-check",
    "--font-render-hinting=none",
)

LINUX_ARGS = (
    "--disable-accelerated-2d-canvas",
    "--disable-accelerated-jpeg-decoding",
    "--disable-accelerated-mjpeg-decode",
    "--disable-accelerated-video-decode",
    "--disable-accelerated-video-encode",
)


def _dedupe(args) -> list[str]:
    seen = set()
    out = []
    for a in args:
        if a not in seen:
            seen.add(a)
            out.append(a)
    return out


def build_launch_args(profile: SystemProfile) -> list[str]:
    """Baseline flags plus the additions for *profile*'s platform/distro."""
    args = list(BASELINE_ARGS)
    if profile.platform is Platform.WINDOWS:
        args.extend(WINDOWS_ARGS)
        if profile.is_wsl:
            args.extend(WSL_ARGS)
    elif profile.platform is Platform.LINUX:
        if profile.is_musl:
            args.extend(MUSL_ARGS)
        else:
            args.extend(LINUX_ARGS)
        if profile.is_wsl:
            args.extend(WSL_ARGS)
    return _dedupe(args)


@dataclass
class LaunchOptions:
    headless: bool = True
    timeout_ms: int = 30000
    retry_attempts: int = 3
    backoff_seconds: float = 1.0
    allow_default_fallback: bool = True


@dataclass(frozen=True)
class BrowserHandle:
    executable_path: str
    is_system_installed: bool
    launch_args: tuple[str, ...] = ()


class BrowserSession:
    """A live browser owned by exactly one converter. Close it when done."""

    def __init__(self, browser: Any, playwright: Any = None, executable_path: str | None = None):
        self.browser = browser
        self.playwright = playwright
        self.executable_path = executable_path
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def new_page(self, **kwargs):
        return await self.browser.new_page(**kwargs)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self.browser.close()
        except Exception as e:
            log.warning(f"Failed to close browser cleanly: {e}")
        if self.playwright is not None:
            try:
                await self.playwright.stop()
            except Exception as e:
                log.warning(f"Failed to stop Playwright driver: {e}")

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()


LaunchFn = Callable[[str | None, list[str], bool, int], Awaitable[BrowserSession]]


async def playwright_launch(executable_path: str | None, args: list[str],
                            headless: bool, timeout_ms: int) -> BrowserSession:
    """Start the Playwright driver and launch Chromium; stop the driver on failure."""
    from playwright.async_api import async_playwright

    pw = await async_playwright().start()
    try:
        browser = await pw.chromium.launch(
            executable_path=executable_path,
            args=args,
            headless=headless,
            timeout=timeout_ms,
        )
    except Exception:
        await pw.stop()
        raise
    return BrowserSession(browser, pw, executable_path)


class LaunchState(Enum):
    ATTEMPTING = "attempting"
    SUCCESS = "success"
    EXHAUSTED = "exhausted"


@dataclass
class LaunchAttempt:
    number: int
    executable_path: str | None
    error: str = ""
    duration: float = 0.0
    fallback: bool = False

    @property
    def ok(self) -> bool:
        return not self.error


@dataclass
class LaunchReport:
    state: LaunchState = LaunchState.ATTEMPTING
    attempts: list[LaunchAttempt] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "attempts": [
                {"number": a.number, "executable_path": a.executable_path,
                 "error": a.error, "duration": round(a.duration, 3), "fallback": a.fallback}
                for a in self.attempts
            ],
        }


class BrowserLauncher:
    """Launches Chromium with retry/backoff. All side effects are injectable."""

    def __init__(
        self,
        *,
        launch_fn: LaunchFn = playwright_launch,
        exists: Callable[[str], bool] | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        event_logger=None,
    ):
        self._launch_fn = launch_fn
        self._exists = exists or os.path.exists
        self._sleep = sleep
        self.event_logger = event_logger
        self.last_report = LaunchReport()

    async def _attempt(self, report: LaunchReport, path: str | None, args: list[str],
                       options: LaunchOptions, fallback: bool = False) -> BrowserSession | None:
        attempt = LaunchAttempt(number=len(report.attempts) + 1, executable_path=path, fallback=fallback)
        report.attempts.append(attempt)
        t0 = time.monotonic()
        try:
            session = await self._launch_fn(path, args, options.headless, options.timeout_ms)
        except Exception as e:
            attempt.error = str(e) or type(e).__name__
            log.warning("Launch attempt %d failed: %s", attempt.number, attempt.error)
            return None
        finally:
            attempt.duration = time.monotonic() - t0
            if self.event_logger is not None:
                self.event_logger.log_launch_attempt(
                    attempt.number, path, attempt.error, attempt.duration, fallback)
        return session

    async def launch(
        self,
        executable_path: str,
        profile: SystemProfile,
        options: LaunchOptions | None = None,
        *,
        relocate: Callable[[], Awaitable[str]] | None = None,
    ) -> BrowserSession:
        """Launch *executable_path*, retrying and falling back as configured.

        *relocate* re-resolves the path when it vanished between attempts.
        Raises LaunchError once every attempt has failed.
        """
        options = options or LaunchOptions()
        args = build_launch_args(profile)
        report = LaunchReport()
        self.last_report = report
        path = executable_path
        retries = max(1, options.retry_attempts)
        n = 1

        log.info("Launching browser for %s: %s", profile.label, path)
        while report.state is LaunchState.ATTEMPTING:
            session = await self._attempt(report, path, args, options)
            if session is not None:
                report.state = LaunchState.SUCCESS
                break
            if n >= retries:
                report.state = LaunchState.EXHAUSTED
                break
            await self._sleep(n * options.backoff_seconds)
            n += 1
            if relocate is not None and not self._exists(path):
                log.info("Browser path %s disappeared, re-resolving", path)
                try:
                    path = await relocate()
                except RenderError as e:
                    log.warning(f"Re-resolution failed: {e}")

        if report.state is LaunchState.EXHAUSTED and options.allow_default_fallback and not profile.is_musl:
            log.info("Trying fallback launch without explicit executable path...")
            session = await self._attempt(report, None, args, options, fallback=True)
            if session is not None:
                report.state = LaunchState.SUCCESS

        if report.state is LaunchState.SUCCESS:
            log.info("Browser launched after %d attempt(s)", len(report.attempts))
            if self.event_logger is not None:
                self.event_logger.log_launch_end(True, len(report.attempts), path, "")
            return session

        error = _launch_error(report, path, profile)
        log.error(f"Browser launch failed: {report.attempts[-1].error}")
        if self.event_logger is not None:
            self.event_logger.log_launch_end(False, len(report.attempts), path, str(error))
        raise error


def _launch_error(report: LaunchReport, path: str, profile: SystemProfile) -> LaunchError:
    primary = next((a for a in report.attempts if not a.fallback), report.attempts[-1])
    last = [a for a in report.attempts if not a.fallback][-1]
    steps = "\n".join(f"  {s}" for s in remediation_steps(profile))
    message = (
        f"Failed to launch browser after {len(report.attempts)} attempt(s): {last.error}\n"
        f"Platform: {profile.label}\n"
        f"Executable: {path}\n"
        f"To fix, try:\n{steps}"
    )
    if primary.error != last.error:
        message += f"\nFirst error: {primary.error}"
    return LaunchError(message, details={"profile": profile.to_dict(), **report.to_dict()})
