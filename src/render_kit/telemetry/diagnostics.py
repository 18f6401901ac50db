"""Diagnostic snapshot of browser setup, for status surfaces and bug reports.

Captures the host profile, dependency outcome, candidate paths checked and
launch attempts. Capture and save are best-effort and never raise.
"""
import json
import logging
import os
import time
from dataclasses import dataclass, field, asdict
from typing import Any

log = logging.getLogger(__name__)


@dataclass
class SetupDiagnostics:
    state: str = "uninitialized"
    profile: dict[str, Any] = field(default_factory=dict)
    install_outcome: dict[str, Any] | None = None
    dependencies_present: bool | None = None
    candidates_checked: list[str] = field(default_factory=list)
    executable_path: str = ""
    source: str = ""            # "system", "bundled", "pinned"
    launch: dict[str, Any] = field(default_factory=dict)
    error: str = ""
    error_code: str = ""
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return asdict(self)

    @property
    def summary(self) -> str:
        """One-line human summary."""
        where = self.profile.get("platform", "unknown")
        if self.error:
            return f"{self.state} on {where}: {self.error.splitlines()[0]}"
        if self.executable_path:
            return f"{self.state} on {where}: {self.source} browser at {self.executable_path}"
        return f"{self.state} on {where}"


def capture_diagnostics(manager, error: BaseException | None = None) -> SetupDiagnostics:
    """Best-effort snapshot of *manager*'s cached state. Never raises."""
    diag = SetupDiagnostics()
    try:
        diag.state = manager.state.value
    except Exception:
        pass
    try:
        profile = manager.probe.cached
        diag.profile = profile.to_dict() if profile else {}
    except Exception:
        pass
    try:
        outcome = manager.install_outcome
        diag.install_outcome = outcome.to_dict() if outcome else None
    except Exception:
        pass
    try:
        diag.candidates_checked = list(manager.locator.last_checked)
    except Exception:
        pass
    try:
        diag.executable_path = manager.executable_path or ""
        diag.source = manager.source or ""
    except Exception:
        pass
    try:
        diag.launch = manager.launcher.last_report.to_dict()
    except Exception:
        pass

    err = error if error is not None else getattr(manager, "last_error", None)
    if err is not None:
        diag.error = str(err)
        code = getattr(err, "code", None)
        diag.error_code = getattr(code, "value", "") or ""
    return diag


def save_diagnostics(diag: SetupDiagnostics, base_dir: str = "data/logs/diagnostics") -> str:
    """Save diagnostics to JSON. Returns file path, or '' on failure."""
    try:
        os.makedirs(base_dir, exist_ok=True)
        ts = time.strftime("%Y%m%d_%H%M%S") + f"_{int(time.time() * 1000) % 1000:03d}"
        path = os.path.join(base_dir, f"setup_{ts}.json")
        with open(path, "w", encoding="utf-8") as f:
            json.dump(diag.to_dict(), f, ensure_ascii=False, indent=2, default=str)
        return path
    except Exception as e:
        log.debug(f"Failed to save diagnostics: {e}")
        return ""
