"""Runtime configuration, read from ``RENDER_KIT_*`` environment variables.

All paths are runtime-injected; nothing is derived from the package location.
"""
import logging
import os
from dataclasses import dataclass, field

log = logging.getLogger(__name__)

ENV_BROWSERS_PATH = "RENDER_KIT_BROWSERS_PATH"
ENV_SKIP_DOWNLOAD = "RENDER_KIT_SKIP_BROWSER_DOWNLOAD"
ENV_EXECUTABLE_PATH = "RENDER_KIT_EXECUTABLE_PATH"
ENV_INSTALL_DEPS = "RENDER_KIT_INSTALL_DEPS"
ENV_APPLY_WSL_ENV = "RENDER_KIT_APPLY_WSL_ENV"
ENV_LAUNCH_TIMEOUT_MS = "RENDER_KIT_LAUNCH_TIMEOUT_MS"
ENV_LAUNCH_RETRIES = "RENDER_KIT_LAUNCH_RETRIES"
ENV_EVENT_LOG_DIR = "RENDER_KIT_EVENT_LOG_DIR"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


def _default_browsers_path() -> str:
    return os.path.join(os.path.expanduser("~"), ".render-kit", "browsers")


def _env_bool(env: dict, name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    log.warning(f"Ignoring unrecognized boolean {name}={raw!r}")
    return default


def _env_int(env: dict, name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        log.warning(f"Ignoring non-integer {name}={raw!r}")
        return default


@dataclass
class RenderConfig:
    browsers_path: str = field(default_factory=_default_browsers_path)
    skip_browser_download: bool = False   # system-browser-only mode
    executable_path: str = ""             # pinned browser, bypasses the search
    install_dependencies: bool = True
    apply_wsl_env: bool = False
    launch_timeout_ms: int = 30000
    launch_retries: int = 3
    event_log_dir: str = ""

    @classmethod
    def from_env(cls, environ: dict | None = None) -> "RenderConfig":
        env = os.environ if environ is None else environ
        return cls(
            browsers_path=env.get(ENV_BROWSERS_PATH) or _default_browsers_path(),
            skip_browser_download=_env_bool(env, ENV_SKIP_DOWNLOAD, False),
            executable_path=env.get(ENV_EXECUTABLE_PATH, "").strip(),
            install_dependencies=_env_bool(env, ENV_INSTALL_DEPS, True),
            apply_wsl_env=_env_bool(env, ENV_APPLY_WSL_ENV, False),
            launch_timeout_ms=_env_int(env, ENV_LAUNCH_TIMEOUT_MS, 30000),
            launch_retries=max(1, _env_int(env, ENV_LAUNCH_RETRIES, 3)),
            event_log_dir=env.get(ENV_EVENT_LOG_DIR, "").strip(),
        )

    def ensure_browsers_path(self) -> str:
        """Create the bundled-engine directory if absent and return it."""
        os.makedirs(self.browsers_path, exist_ok=True)
        return self.browsers_path
