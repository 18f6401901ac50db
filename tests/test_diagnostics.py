"""Tests for setup diagnostics capture and save."""
import json
import os
import tempfile
from unittest.mock import MagicMock, PropertyMock

from fakes import DEBIAN

from render_kit.browser.launcher import LaunchReport
from render_kit.errors import LaunchError
from render_kit.system.deps import InstallOutcome
from render_kit.telemetry.diagnostics import SetupDiagnostics, capture_diagnostics, save_diagnostics


def _make_manager():
    manager = MagicMock()
    manager.state.value = "resolved"
    manager.probe.cached = DEBIAN
    manager.install_outcome = InstallOutcome(True, "ok", {"libnss3"})
    manager.locator.last_checked = ["/usr/bin/google-chrome-stable"]
    manager.executable_path = "/usr/bin/google-chrome-stable"
    manager.source = "system"
    manager.launcher.last_report = LaunchReport()
    manager.last_error = None
    return manager


def test_capture_resolved():
    diag = capture_diagnostics(_make_manager())
    assert diag.state == "resolved"
    assert diag.profile["linux_distro"] == "debian"
    assert diag.install_outcome["installed_packages"] == ["libnss3"]
    assert diag.candidates_checked == ["/usr/bin/google-chrome-stable"]
    assert diag.source == "system"
    assert diag.launch["state"] == "attempting"
    assert diag.error == ""
    assert diag.summary == "resolved on linux: system browser at /usr/bin/google-chrome-stable"


def test_capture_with_error():
    manager = _make_manager()
    err = LaunchError("Failed to launch browser after 3 attempt(s): crash\nPlatform: linux")
    diag = capture_diagnostics(manager, err)
    assert diag.error_code == "LAUNCH_FAILED"
    assert diag.summary == "resolved on linux: Failed to launch browser after 3 attempt(s): crash"


def test_capture_falls_back_to_last_error():
    manager = _make_manager()
    manager.last_error = LaunchError("stale")
    assert capture_diagnostics(manager).error == "stale"


def test_capture_never_raises():
    manager = MagicMock()
    type(manager).state = PropertyMock(side_effect=RuntimeError("boom"))
    type(manager).install_outcome = PropertyMock(side_effect=RuntimeError("boom"))
    manager.probe.cached = None
    manager.last_error = None
    diag = capture_diagnostics(manager)
    assert diag.state == "uninitialized"
    assert diag.profile == {}


def test_save_and_reload():
    with tempfile.TemporaryDirectory() as tmpdir:
        diag = SetupDiagnostics(state="failed", error="no browser", error_code="BROWSER_NOT_FOUND")
        path = save_diagnostics(diag, base_dir=tmpdir)
        assert path.startswith(tmpdir)
        assert os.path.basename(path).startswith("setup_")
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        assert data["state"] == "failed"
        assert data["error_code"] == "BROWSER_NOT_FOUND"


def test_save_failure_returns_empty():
    with tempfile.TemporaryDirectory() as tmpdir:
        blocker = os.path.join(tmpdir, "file")
        with open(blocker, "w") as f:
            f.write("x")
        assert save_diagnostics(SetupDiagnostics(), base_dir=os.path.join(blocker, "sub")) == ""
