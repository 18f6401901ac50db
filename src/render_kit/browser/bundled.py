"""Playwright-bundled Chromium: resolution and on-demand download.

The bundled engine lives under ``RenderConfig.browsers_path`` and is fetched
with ``python -m playwright install chromium``. It is glibc-only; callers
must not use it on musl hosts.
"""
import asyncio
import logging
import os
import sys

from ..config import RenderConfig
from ..system.commands import CommandFailed, CommandRunner, CommandTimeout, check_command, run_command

log = logging.getLogger(__name__)

PLAYWRIGHT_BROWSERS_ENV = "PLAYWRIGHT_BROWSERS_PATH"
DOWNLOAD_TIMEOUT = 600
PATH_QUERY_TIMEOUT = 30

# Runs in a child process so the browsers directory can be passed through its
# environment instead of ours.
PATH_SCRIPT = (
    "from playwright.sync_api import sync_playwright\n"
    "with sync_playwright() as p:\n"
    "    print(p.chromium.executable_path)\n"
)


class BundledBrowser:
    """Resolves and installs the bundled engine. Installs are single-flight."""

    def __init__(self, config: RenderConfig, *, runner: CommandRunner = run_command,
                 path_reader=None, exists=os.path.exists):
        self._config = config
        self._runner = runner
        self._path_reader = path_reader or self._read_playwright_path
        self._exists = exists
        self._install_lock = asyncio.Lock()
        self.install_attempted = False

    def activate(self) -> None:
        """Point Playwright's driver at the configured browsers directory.

        Only the setup path calls this; status queries leave the process
        environment and the filesystem untouched.
        """
        os.environ[PLAYWRIGHT_BROWSERS_ENV] = self._config.ensure_browsers_path()

    async def _read_playwright_path(self) -> str | None:
        result = await check_command(
            self._runner,
            [sys.executable, "-c", PATH_SCRIPT],
            timeout=PATH_QUERY_TIMEOUT,
            env={PLAYWRIGHT_BROWSERS_ENV: self._config.browsers_path},
        )
        return result.stdout.strip() or None

    async def executable_path(self) -> str | None:
        """Path the bundled engine resolves to, whether or not it is downloaded."""
        try:
            return await self._path_reader()
        except Exception as e:
            log.warning(f"Could not resolve bundled browser path: {e}")
            return None

    async def is_installed(self) -> bool:
        path = await self.executable_path()
        return bool(path) and self._exists(path)

    async def ensure_installed(self) -> str | None:
        """Download the bundled engine if missing; return its path or None.

        Returns None without downloading when downloads are disabled. Concurrent
        callers wait for the one in-flight download.
        """
        if self._config.skip_browser_download:
            return None
        async with self._install_lock:
            path = await self.executable_path()
            if path and self._exists(path):
                return path
            if self.install_attempted:
                return None
            self.install_attempted = True
            log.info("Installing bundled Chromium into %s...", self._config.browsers_path)
            try:
                await check_command(
                    self._runner,
                    [sys.executable, "-m", "playwright", "install", "chromium"],
                    timeout=DOWNLOAD_TIMEOUT,
                    env={PLAYWRIGHT_BROWSERS_ENV: self._config.ensure_browsers_path()},
                )
            except (CommandFailed, CommandTimeout) as e:
                log.warning(f"Bundled Chromium install failed: {e}")
                return None
            log.info("Bundled Chromium installed")
            path = await self.executable_path()
            return path if path and self._exists(path) else None

    async def resolve(self) -> str | None:
        """Locator hook: the bundled path, downloading it first when allowed."""
        self.activate()
        path = await self.executable_path()
        if path and self._exists(path):
            return path
        return await self.ensure_installed()

    async def resolve_without_download(self) -> str | None:
        """Locator hook for side-effect-free status queries."""
        return await self.executable_path()
