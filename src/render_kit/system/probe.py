"""Host detection: OS platform, CPU architecture, Linux distro/libc and WSL.

Detection never fails outright. Platform and architecture are read from the
interpreter; everything that needs a subprocess or a marker file falls back
to an unknown value when its probe errors or times out.
"""
import asyncio
import logging
import os
import platform as _platform
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from .commands import CommandFailed, CommandRunner, CommandTimeout, run_command

log = logging.getLogger(__name__)

# Per-query time budgets (seconds)
LDD_TIMEOUT = 3
UNAME_TIMEOUT = 3
WMIC_TIMEOUT = 5
WSL_LIST_TIMEOUT = 3
SW_VERS_TIMEOUT = 3

ALPINE_MARKER = "/etc/alpine-release"


class Platform(Enum):
    WINDOWS = "windows"
    MACOS = "macos"
    LINUX = "linux"


class LinuxDistro(Enum):
    ALPINE = "alpine"
    DEBIAN = "debian"
    REDHAT = "redhat"
    ARCH = "arch"
    UNKNOWN = "unknown"


class Libc(Enum):
    GLIBC = "glibc"
    MUSL = "musl"


# Checked in order after Alpine; first marker present wins.
DISTRO_MARKERS: list[tuple[LinuxDistro, str]] = [
    (LinuxDistro.DEBIAN, "/etc/debian_version"),
    (LinuxDistro.REDHAT, "/etc/redhat-release"),
    (LinuxDistro.ARCH, "/etc/arch-release"),
]


@dataclass(frozen=True)
class SystemProfile:
    platform: Platform
    architecture: str
    linux_distro: LinuxDistro | None = None
    libc: Libc | None = None
    is_wsl: bool = False
    os_version: str = ""

    @property
    def is_musl(self) -> bool:
        """True on Alpine or any musl host, where the bundled engine cannot run."""
        return self.linux_distro is LinuxDistro.ALPINE or self.libc is Libc.MUSL

    @property
    def label(self) -> str:
        """Short human-readable platform/distro label for messages."""
        if self.platform is Platform.LINUX:
            distro = self.linux_distro.value if self.linux_distro else "unknown"
            libc = self.libc.value if self.libc else "unknown libc"
            suffix = ", WSL" if self.is_wsl else ""
            return f"linux/{distro} ({libc}{suffix})"
        return self.platform.value

    def to_dict(self) -> dict:
        return {
            "platform": self.platform.value,
            "architecture": self.architecture,
            "linux_distro": self.linux_distro.value if self.linux_distro else None,
            "libc": self.libc.value if self.libc else None,
            "is_wsl": self.is_wsl,
            "os_version": self.os_version,
        }


def platform_from_sys(name: str) -> Platform:
    """Map ``sys.platform`` to a Platform. Anything unrecognized is treated as Linux."""
    if name.startswith("win") or name == "cygwin":
        return Platform.WINDOWS
    if name == "darwin":
        return Platform.MACOS
    return Platform.LINUX


class SystemProbe:
    """Memoizing host detector.

    All host access is injectable: *root* prefixes every marker-file path,
    *runner* executes external queries, *sys_platform* and *machine* replace
    the interpreter readers.
    """

    def __init__(
        self,
        *,
        runner: CommandRunner = run_command,
        root: str = "/",
        sys_platform: Callable[[], str] = lambda: sys.platform,
        machine: Callable[[], str] = _platform.machine,
    ):
        self._runner = runner
        self._root = root
        self._sys_platform = sys_platform
        self._machine = machine
        self._profile: SystemProfile | None = None
        self._lock = asyncio.Lock()

    @property
    def cached(self) -> SystemProfile | None:
        return self._profile

    def reset(self) -> None:
        """Forget the memoized profile; the next ``detect()`` re-probes."""
        self._profile = None

    async def detect(self) -> SystemProfile:
        """Return the host profile, probing only on the first call."""
        if self._profile is not None:
            return self._profile
        async with self._lock:
            if self._profile is None:
                self._profile = await self._probe()
                log.info(
                    "Detected system: %s/%s, distro: %s, libc: %s, WSL: %s",
                    self._profile.platform.value,
                    self._profile.architecture,
                    self._profile.linux_distro.value if self._profile.linux_distro else None,
                    self._profile.libc.value if self._profile.libc else None,
                    self._profile.is_wsl,
                )
        return self._profile

    # ── probes ──────────────────────────────────────────────────────────────

    async def _probe(self) -> SystemProfile:
        plat = platform_from_sys(self._sys_platform())
        arch = self._machine() or "unknown"

        if plat is Platform.LINUX:
            libc = await self._detect_libc()
            distro, version = self._detect_distro()
            is_wsl = await self._detect_linux_wsl()
            return SystemProfile(plat, arch, distro, libc, is_wsl, version)
        if plat is Platform.WINDOWS:
            version = await self._windows_version()
            is_wsl = await self._windows_has_wsl()
            return SystemProfile(plat, arch, is_wsl=is_wsl, os_version=version)
        return SystemProfile(plat, arch, os_version=await self._macos_version())

    def _path(self, absolute: str) -> str:
        return os.path.join(self._root, absolute.lstrip("/"))

    def _exists(self, absolute: str) -> bool:
        return os.path.exists(self._path(absolute))

    def _read_marker(self, absolute: str) -> str:
        try:
            with open(self._path(absolute), "r", encoding="utf-8", errors="replace") as f:
                return f.read().strip()
        except OSError as e:
            log.debug("Could not read %s: %s", absolute, e)
            return ""

    async def _query(self, argv: list[str], timeout: float) -> str | None:
        """Run a detection query; return stdout+stderr or None on any failure."""
        try:
            result = await self._runner(argv, timeout=timeout)
        except CommandTimeout as e:
            log.warning("System probe timed out: %s", e)
            return None
        except CommandFailed as e:
            log.debug("System probe unavailable: %s", e)
            return None
        except Exception as e:
            log.warning("System probe %s failed: %s", argv[0], e)
            return None
        if not result.ok:
            log.debug("System probe %s exited %d", argv[0], result.returncode)
            return None
        return result.output

    async def _detect_libc(self) -> Libc:
        if self._exists(ALPINE_MARKER):
            return Libc.MUSL
        out = await self._query(["ldd", "--version"], LDD_TIMEOUT)
        if out is not None:
            lowered = out.lower()
            if "musl" in lowered:
                return Libc.MUSL
            if "gnu" in lowered or "glibc" in lowered:
                return Libc.GLIBC
        # Query failed or was inconclusive: only the marker can say musl.
        return Libc.MUSL if self._exists(ALPINE_MARKER) else Libc.GLIBC

    def _detect_distro(self) -> tuple[LinuxDistro, str]:
        if self._exists(ALPINE_MARKER):
            return LinuxDistro.ALPINE, self._read_marker(ALPINE_MARKER)
        for distro, marker in DISTRO_MARKERS:
            if self._exists(marker):
                version = "" if distro is LinuxDistro.ARCH else self._read_marker(marker)
                return distro, version
        return LinuxDistro.UNKNOWN, ""

    async def _detect_linux_wsl(self) -> bool:
        out = await self._query(["uname", "-r"], UNAME_TIMEOUT)
        if out is None:
            return False
        release = out.lower()
        return "microsoft" in release or "wsl" in release

    async def _windows_version(self) -> str:
        out = await self._query(["wmic", "os", "get", "Caption,Version", "/format:csv"], WMIC_TIMEOUT)
        if not out:
            return ""
        for line in out.splitlines():
            if "Microsoft" in line:
                parts = line.split(",")
                if len(parts) > 2:
                    return parts[2].strip()
        return ""

    async def _windows_has_wsl(self) -> bool:
        out = await self._query(["wsl", "--list", "--quiet"], WSL_LIST_TIMEOUT)
        return bool(out and out.strip("\x00\r\n "))

    async def _macos_version(self) -> str:
        out = await self._query(["sw_vers", "-productVersion"], SW_VERS_TIMEOUT)
        return out.strip() if out else ""
