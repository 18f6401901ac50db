"""OS package installation for headless Chromium runtime libraries and fonts.

``install_dependencies`` never raises: every failure becomes a
non-succeeded ``InstallOutcome`` with a human-readable message.
"""
import logging
from dataclasses import dataclass, field

from .commands import (
    CommandFailed,
    CommandRunner,
    CommandTimeout,
    check_command,
    command_succeeds,
    run_command,
)
from .probe import Libc, LinuxDistro, Platform, SystemProfile

log = logging.getLogger(__name__)

# Installed-check budget, shared by every manager.
CHECK_TIMEOUT = 10


@dataclass
class InstallOutcome:
    succeeded: bool
    message: str
    installed_packages: set[str] = field(default_factory=set)
    failed_packages: set[str] = field(default_factory=set)

    def to_dict(self) -> dict:
        return {
            "succeeded": self.succeeded,
            "message": self.message,
            "installed_packages": sorted(self.installed_packages),
            "failed_packages": sorted(self.failed_packages),
        }


def majority_succeeded(attempted: int, failed: int) -> bool:
    """Install policy: succeeded iff fewer than half of the attempted packages failed.

    Tolerates optional or already-satisfied packages on minimal images.
    """
    return failed < attempted / 2


@dataclass(frozen=True)
class PackageManager:
    """How to drive one native package manager non-interactively."""
    name: str
    label: str
    packages: tuple[str, ...]
    install: tuple[str, ...]              # package name is appended
    check: tuple[str, ...] | None = None  # package name is appended; exit 0 = installed
    refresh: tuple[str, ...] | None = None
    install_timeout: float = 120
    refresh_timeout: float = 60

    def install_argv(self, *packages: str) -> list[str]:
        return [*self.install, *packages]

    def check_argv(self, package: str) -> list[str] | None:
        return [*self.check, package] if self.check else None


APK_PACKAGES = (
    "gcompat",          # glibc compatibility
    "libstdc++",
    "chromium",         # the bundled engine cannot run on musl
    "ttf-liberation",
    "fontconfig",
    "cairo",
    "pango",
    "gdk-pixbuf",
    "gtk+3.0",
    "nss",
    "freetype",
    "harfbuzz",
    "alsa-lib",         # required even headless
    "alsa-lib-dev",
    "pulseaudio-libs",
)
APK_MUSL_EXTRAS = ("glib", "atk", "at-spi2-atk", "cups-libs")

APT_PACKAGES = (
    "libnss3",
    "libatk-bridge2.0-0",
    "libxcomposite1",
    "libxdamage1",
    "libxrandr2",
    "libgbm1",
    "libxss1",
    "libasound2",
    "libatspi2.0-0",
    "libgtk-3-0",
    "libgdk-pixbuf2.0-0",
    "libglib2.0-0",
    "fonts-liberation",
    "libappindicator3-1",
    "xdg-utils",
)

RPM_PACKAGES = (
    "nss",
    "atk",
    "cups-libs",
    "gtk3",
    "libXcomposite",
    "libXdamage",
    "libXrandr",
    "libgbm",
    "libXScrnSaver",
    "alsa-lib",
)

PACMAN_PACKAGES = (
    "nss",
    "atk",
    "gtk3",
    "libxcomposite",
    "libxdamage",
    "libxrandr",
    "mesa",
    "libxss",
    "alsa-lib",
)

CHOCO_PACKAGES = ("vcredist2019", "visualcpp-build-tools")

APK = PackageManager(
    name="apk", label="Alpine Linux", packages=APK_PACKAGES,
    install=("apk", "add", "--no-cache"),
    check=("apk", "info", "-e"),
    refresh=("apk", "update"),
    install_timeout=120, refresh_timeout=60,
)
APT = PackageManager(
    name="apt", label="Debian/Ubuntu", packages=APT_PACKAGES,
    install=("apt-get", "install", "-y", "--no-install-recommends"),
    check=("dpkg", "-s"),
    refresh=("apt-get", "update", "-qq"),
    install_timeout=60, refresh_timeout=120,
)
DNF = PackageManager(
    name="dnf", label="RedHat/Fedora", packages=RPM_PACKAGES,
    install=("dnf", "install", "-y"), check=("rpm", "-q"),
)
YUM = PackageManager(
    name="yum", label="RedHat/CentOS", packages=RPM_PACKAGES,
    install=("yum", "install", "-y"), check=("rpm", "-q"),
)
PACMAN = PackageManager(
    name="pacman", label="Arch Linux", packages=PACMAN_PACKAGES,
    install=("pacman", "-S", "--noconfirm", "--needed"),
    check=("pacman", "-Q"),
)
CHOCO = PackageManager(
    name="choco", label="Windows", packages=CHOCO_PACKAGES,
    install=("choco", "install", "-y", "--no-progress"),
    check=("choco", "list", "--local-only", "--exact"),
    install_timeout=300,
)

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}

# Linux distro -> package manager; RedHat picks dnf/yum at runtime.
LINUX_MANAGERS: dict[LinuxDistro, PackageManager] = {
    LinuxDistro.ALPINE: APK,
    LinuxDistro.DEBIAN: APT,
    LinuxDistro.REDHAT: YUM,
    LinuxDistro.ARCH: PACMAN,
}


class DependencyInstaller:
    """Installs Chromium runtime packages with the host's package manager."""

    def __init__(self, *, runner: CommandRunner = run_command):
        self._runner = runner

    async def install_dependencies(self, profile: SystemProfile) -> InstallOutcome:
        log.info("Starting automatic dependency installation for %s", profile.label)
        try:
            if profile.platform is Platform.WINDOWS:
                return await self._install_windows()
            if profile.platform is Platform.MACOS:
                return await self._verify_macos()

            if profile.is_wsl:
                # WSL distributions are Debian-family in practice.
                outcome = await self._install_with(APT, APT.packages)
                outcome.message = f"WSL {outcome.message}"
                return outcome

            manager = LINUX_MANAGERS.get(profile.linux_distro or LinuxDistro.UNKNOWN)
            if manager is None:
                if profile.libc is Libc.MUSL:
                    manager = APK
                else:
                    return InstallOutcome(
                        succeeded=True,
                        message=f"No dependency installation required for {profile.label}",
                    )
            if manager is YUM and await command_succeeds(self._runner, ["dnf", "--version"]):
                manager = DNF

            packages = manager.packages
            if manager is APK and profile.libc is Libc.MUSL:
                packages = packages + APK_MUSL_EXTRAS
            return await self._install_with(manager, packages)
        except Exception as e:
            msg = f"Failed to install system dependencies: {e}"
            log.error(msg)
            return InstallOutcome(succeeded=False, message=msg)

    async def dependency_status(self, profile: SystemProfile) -> bool:
        """Quick side-effect-free check that the key runtime library is present."""
        if profile.platform is not Platform.LINUX:
            return True
        if profile.linux_distro is LinuxDistro.ALPINE:
            return await command_succeeds(self._runner, ["apk", "info", "-e", "gcompat"])
        if profile.linux_distro is LinuxDistro.DEBIAN or profile.is_wsl:
            return await command_succeeds(self._runner, ["dpkg", "-s", "libnss3"])
        return True

    # ── per-manager procedure ───────────────────────────────────────────────

    async def _install_with(self, manager: PackageManager, packages: tuple[str, ...]) -> InstallOutcome:
        log.info("Installing %s dependencies via %s...", manager.label, manager.name)
        env = APT_ENV if manager is APT else None
        installed: set[str] = set()
        failed: set[str] = set()

        if manager.refresh:
            try:
                await check_command(self._runner, manager.refresh,
                                    timeout=manager.refresh_timeout, env=env)
                log.info("Package index updated")
            except (CommandFailed, CommandTimeout) as e:
                log.warning("Package index refresh failed, continuing: %s", e)

        for pkg in packages:
            if await self._is_installed(manager, pkg):
                log.info("%s already installed", pkg)
                installed.add(pkg)
                continue
            try:
                log.info("Installing %s...", pkg)
                await check_command(self._runner, manager.install_argv(pkg),
                                    timeout=manager.install_timeout, env=env)
                installed.add(pkg)
            except (CommandFailed, CommandTimeout) as e:
                log.warning("Failed to install %s: %s", pkg, e)
                failed.add(pkg)

        return InstallOutcome(
            succeeded=majority_succeeded(len(packages), len(failed)),
            message=(
                f"{manager.label} dependencies installation completed. "
                f"Installed: {len(installed)}, Failed: {len(failed)}"
            ),
            installed_packages=installed,
            failed_packages=failed,
        )

    async def _is_installed(self, manager: PackageManager, pkg: str) -> bool:
        argv = manager.check_argv(pkg)
        if argv is None:
            return False
        return await command_succeeds(self._runner, argv, timeout=CHECK_TIMEOUT)

    async def _install_windows(self) -> InstallOutcome:
        if not await command_succeeds(self._runner, ["choco", "--version"]):
            msg = ("Chocolatey not found. Install the Visual C++ Redistributable "
                   "manually if the browser fails to start.")
            log.warning(msg)
            return InstallOutcome(succeeded=True, message=msg)
        return await self._install_with(CHOCO, CHOCO.packages)

    async def _verify_macos(self) -> InstallOutcome:
        if not await command_succeeds(self._runner, ["xcode-select", "--print-path"], timeout=10):
            msg = "Please install Xcode Command Line Tools: xcode-select --install"
            log.warning("Xcode Command Line Tools not found. %s", msg)
            return InstallOutcome(
                succeeded=False, message=msg,
                failed_packages={"xcode-command-line-tools"},
            )
        if await command_succeeds(self._runner, ["brew", "--version"]):
            log.info("Homebrew detected")
        else:
            log.info("Homebrew not found; system libraries should be sufficient")
        return InstallOutcome(
            succeeded=True,
            message="macOS dependencies verified successfully",
            installed_packages={"xcode-command-line-tools"},
        )
