"""Platform-specific remediation text for browser failures."""
from ..system.probe import LinuxDistro, Platform, SystemProfile

ALPINE_INSTALL_COMMAND = "apk add --no-cache chromium chromium-chromedriver"
BUNDLED_INSTALL_COMMAND = "python -m playwright install chromium"
BUNDLED_DEPS_COMMAND = "python -m playwright install-deps chromium"

_LINUX_STEPS: dict[LinuxDistro, list[str]] = {
    LinuxDistro.DEBIAN: [
        "apt-get update && apt-get install -y chromium fonts-liberation libnss3 libgbm1",
        BUNDLED_DEPS_COMMAND,
    ],
    LinuxDistro.REDHAT: [
        "dnf install -y chromium nss atk gtk3 alsa-lib",
    ],
    LinuxDistro.ARCH: [
        "pacman -S --noconfirm chromium nss alsa-lib",
    ],
}


def remediation_steps(profile: SystemProfile) -> list[str]:
    """Shell commands (or instructions) that usually fix a missing/broken browser."""
    if profile.is_musl:
        return [
            ALPINE_INSTALL_COMMAND,
            "apk add --no-cache nss freetype harfbuzz ttf-liberation gcompat",
        ]
    if profile.platform is Platform.WINDOWS:
        return [
            "winget install Google.Chrome",
            "choco install googlechrome -y",
            BUNDLED_INSTALL_COMMAND,
        ]
    if profile.platform is Platform.MACOS:
        return [
            "brew install --cask google-chrome",
            "xcode-select --install",
            BUNDLED_INSTALL_COMMAND,
        ]
    steps = list(_LINUX_STEPS.get(profile.linux_distro, []))
    steps.append(BUNDLED_INSTALL_COMMAND)
    if BUNDLED_DEPS_COMMAND not in steps:
        steps.append(BUNDLED_DEPS_COMMAND)
    return steps


def not_found_message(profile: SystemProfile) -> str:
    """Message body for BrowserNotFoundError, distinct per platform family."""
    steps = "\n".join(f"  {s}" for s in remediation_steps(profile))
    if profile.is_musl:
        return (
            "Alpine Linux (musl) requires a system Chromium: the bundled browser "
            "is built against glibc and is incompatible with musl. "
            f"Please install with: {ALPINE_INSTALL_COMMAND}\n{steps}"
        )
    if profile.platform is Platform.WINDOWS:
        return (
            "No Chrome or Edge installation found on Windows. Install Google Chrome "
            f"or Microsoft Edge, or fetch the bundled browser:\n{steps}"
        )
    if profile.platform is Platform.MACOS:
        return (
            "No Chrome, Edge or Chromium app found in /Applications. "
            f"Install one, or fetch the bundled browser:\n{steps}"
        )
    return (
        f"No suitable Chromium browser found on {profile.label}. Install Chrome "
        f"or Chromium, or fetch the bundled browser:\n{steps}"
    )
