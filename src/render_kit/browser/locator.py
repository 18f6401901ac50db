"""System Chromium discovery with a bundled-engine fallback.

Candidate paths are a table keyed by profile shape, so ordering is explicit
and testable without a real filesystem.
"""
import logging
import os
from typing import Awaitable, Callable

from ..errors import BrowserNotFoundError
from ..system.probe import Platform, SystemProfile
from .remediation import not_found_message

log = logging.getLogger(__name__)

ExistsFn = Callable[[str], bool]
BundledResolver = Callable[[], Awaitable[str | None]]

WINDOWS_CANDIDATES = (
    "C:\\Program Files\\Google\\Chrome\\Application\\chrome.exe",
    "C:\\Program Files (x86)\\Google\\Chrome\\Application\\chrome.exe",
    "C:\\Program Files\\Microsoft\\Edge\\Application\\msedge.exe",
    "C:\\Program Files (x86)\\Microsoft\\Edge\\Application\\msedge.exe",
)

MACOS_CANDIDATES = (
    "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
    "/Applications/Microsoft Edge.app/Contents/MacOS/Microsoft Edge",
    "/Applications/Chromium.app/Contents/MacOS/Chromium",
)

# Alpine's apk install path first.
LINUX_MUSL_CANDIDATES = (
    "/usr/bin/chromium-browser",
    "/usr/bin/chromium",
    "/usr/lib/chromium/chromium",
    "/usr/bin/google-chrome-stable",
    "/usr/bin/google-chrome",
)

LINUX_GLIBC_CANDIDATES = (
    "/usr/bin/google-chrome-stable",
    "/usr/bin/google-chrome",
    "/usr/bin/chromium-browser",
    "/usr/bin/chromium",
    "/snap/bin/chromium",
    "/var/lib/flatpak/app/org.chromium.Chromium/current/active/export/bin/org.chromium.Chromium",
)

# (platform, is_musl) -> ordered candidates. musl only matters on Linux.
CANDIDATES: dict[tuple[Platform, bool], tuple[str, ...]] = {
    (Platform.WINDOWS, False): WINDOWS_CANDIDATES,
    (Platform.MACOS, False): MACOS_CANDIDATES,
    (Platform.LINUX, False): LINUX_GLIBC_CANDIDATES,
    (Platform.LINUX, True): LINUX_MUSL_CANDIDATES,
}


def candidates_for(profile: SystemProfile) -> tuple[str, ...]:
    """Ordered system-install candidates for *profile*."""
    musl = profile.platform is Platform.LINUX and profile.is_musl
    return CANDIDATES.get((profile.platform, musl), ())


async def _no_bundled() -> str | None:
    return None


class BrowserLocator:
    """Resolves the first usable Chromium executable for a profile.

    *exists* replaces ``os.path.exists``; *bundled_resolver* returns the
    bundled engine's executable path (or None) and is only awaited when
    no system candidate matched on a non-musl host.
    """

    def __init__(
        self,
        *,
        exists: ExistsFn = os.path.exists,
        bundled_resolver: BundledResolver = _no_bundled,
    ):
        self._exists = exists
        self._bundled_resolver = bundled_resolver
        self.last_checked: list[str] = []

    @property
    def exists(self) -> ExistsFn:
        return self._exists

    def find_system_browser(self, profile: SystemProfile) -> str | None:
        """Return the first existing system candidate, or None."""
        self.last_checked = []
        for candidate in candidates_for(profile):
            self.last_checked.append(candidate)
            if self._exists(candidate):
                return candidate
        return None

    async def locate(self, profile: SystemProfile, prefer_system_only: bool = False) -> str:
        """Return an existing executable path or raise BrowserNotFoundError."""
        path = self.find_system_browser(profile)
        if path:
            log.info("Found system browser: %s", path)
            return path

        if profile.is_musl:
            # Never fall through to the bundled engine: it is glibc-only.
            raise BrowserNotFoundError(
                not_found_message(profile),
                details={"checked": list(self.last_checked), "profile": profile.to_dict()},
            )

        if not prefer_system_only:
            try:
                bundled = await self._bundled_resolver()
            except Exception as e:
                log.warning("Bundled browser not resolvable: %s", e)
                bundled = None
            if bundled:
                self.last_checked.append(bundled)
                if self._exists(bundled):
                    log.info("Using bundled browser: %s", bundled)
                    return bundled

        raise BrowserNotFoundError(
            not_found_message(profile),
            details={"checked": list(self.last_checked), "profile": profile.to_dict()},
        )

    def resolve_pinned(self, path: str) -> str | None:
        """Return *path* if an explicitly pinned executable exists, else None."""
        if path and self._exists(path):
            return path
        if path:
            log.warning("Pinned browser path does not exist: %s", path)
        return None
