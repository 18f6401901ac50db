"""Tests for the bundled Chromium resolver/installer."""
import asyncio
import os
import sys

import pytest
from fakes import FakeRunner

from render_kit.browser.bundled import PATH_SCRIPT, PLAYWRIGHT_BROWSERS_ENV, BundledBrowser
from render_kit.config import RenderConfig


@pytest.fixture(autouse=True)
def _restore_browsers_env(monkeypatch):
    monkeypatch.setenv(PLAYWRIGHT_BROWSERS_ENV, "")


class Disk:
    """Simulated bundled install: the path only exists once installed."""

    def __init__(self, path, installed=False):
        self.path = path
        self.installed = installed

    async def read_path(self):
        return self.path

    def exists(self, p):
        return self.installed and p == self.path


def _bundled(tmp_path, disk, runner, **config):
    cfg = RenderConfig(browsers_path=str(tmp_path / "browsers"), **config)
    return BundledBrowser(cfg, runner=runner, path_reader=disk.read_path, exists=disk.exists)


async def test_activate_sets_browsers_path(tmp_path):
    bundled = _bundled(tmp_path, Disk("/x"), FakeRunner())
    bundled.activate()
    assert os.environ[PLAYWRIGHT_BROWSERS_ENV] == str(tmp_path / "browsers")
    assert (tmp_path / "browsers").is_dir()


async def test_resolve_existing_does_not_download(tmp_path):
    disk = Disk(str(tmp_path / "chrome"), installed=True)
    runner = FakeRunner()
    bundled = _bundled(tmp_path, disk, runner)
    assert await bundled.resolve() == disk.path
    assert runner.calls == []


async def test_concurrent_installs_run_once(tmp_path):
    disk = Disk(str(tmp_path / "chrome"))

    class InstallingRunner(FakeRunner):
        async def __call__(self, argv, *, timeout, env=None):
            await asyncio.sleep(0.01)
            disk.installed = True
            return await super().__call__(argv, timeout=timeout, env=env)

    runner = InstallingRunner()
    bundled = _bundled(tmp_path, disk, runner)

    results = await asyncio.gather(*(bundled.resolve() for _ in range(5)))

    assert results == [disk.path] * 5
    assert len(runner.calls) == 1
    assert runner.calls[0][1:] == ["-m", "playwright", "install", "chromium"]


async def test_failed_install_is_not_retried(tmp_path):
    disk = Disk(str(tmp_path / "chrome"))
    runner = FakeRunner(default=(1, "network unreachable"))
    bundled = _bundled(tmp_path, disk, runner)

    assert await bundled.resolve() is None
    assert await bundled.resolve() is None
    assert len(runner.calls) == 1


async def test_skip_download(tmp_path):
    runner = FakeRunner()
    bundled = _bundled(tmp_path, Disk(str(tmp_path / "chrome")), runner, skip_browser_download=True)
    assert await bundled.ensure_installed() is None
    assert runner.calls == []


async def test_resolve_without_download(tmp_path):
    disk = Disk(str(tmp_path / "chrome"))
    runner = FakeRunner()
    bundled = _bundled(tmp_path, disk, runner)
    assert await bundled.resolve_without_download() == disk.path
    assert not await bundled.is_installed()
    assert runner.calls == []


async def test_path_reader_error_is_absorbed(tmp_path):
    async def broken():
        raise RuntimeError("driver not installed")

    cfg = RenderConfig(browsers_path=str(tmp_path / "browsers"))
    bundled = BundledBrowser(cfg, runner=FakeRunner(), path_reader=broken)
    assert await bundled.executable_path() is None


async def test_status_lookup_leaves_environment_alone(tmp_path):
    disk = Disk(str(tmp_path / "chrome"))
    bundled = _bundled(tmp_path, disk, FakeRunner())

    assert await bundled.resolve_without_download() == disk.path
    assert await bundled.is_installed() is False
    assert os.environ[PLAYWRIGHT_BROWSERS_ENV] == ""
    assert not (tmp_path / "browsers").exists()


async def test_resolve_activates_browsers_path(tmp_path):
    disk = Disk(str(tmp_path / "chrome"), installed=True)
    bundled = _bundled(tmp_path, disk, FakeRunner())
    await bundled.resolve()
    assert os.environ[PLAYWRIGHT_BROWSERS_ENV] == str(tmp_path / "browsers")


async def test_default_path_reader_queries_child_process(tmp_path):
    chrome = "/home/app/.render-kit/browsers/chromium-1105/chrome-linux/chrome"
    runner = FakeRunner({sys.executable: chrome + "\n"})
    cfg = RenderConfig(browsers_path=str(tmp_path / "browsers"))
    bundled = BundledBrowser(cfg, runner=runner)

    assert await bundled.resolve_without_download() == chrome
    assert runner.calls == [[sys.executable, "-c", PATH_SCRIPT]]
    assert runner.envs == [{PLAYWRIGHT_BROWSERS_ENV: str(tmp_path / "browsers")}]
    assert os.environ[PLAYWRIGHT_BROWSERS_ENV] == ""
    assert not (tmp_path / "browsers").exists()


async def test_default_path_reader_failure_is_absorbed(tmp_path):
    runner = FakeRunner({sys.executable: (1, "ModuleNotFoundError: No module named 'playwright'")})
    cfg = RenderConfig(browsers_path=str(tmp_path / "browsers"))
    assert await BundledBrowser(cfg, runner=runner).executable_path() is None
