"""Tests for bounded subprocess execution."""
import sys

import pytest
from fakes import FakeRunner

from render_kit.system.commands import (
    CommandFailed,
    CommandTimeout,
    check_command,
    command_succeeds,
    run_command,
)


async def test_run_command_captures_output():
    result = await run_command([sys.executable, "-c", "print('hello')"], timeout=30)
    assert result.ok
    assert result.stdout.strip() == "hello"


async def test_run_command_nonzero_is_returned():
    result = await run_command([sys.executable, "-c", "import sys; sys.exit(3)"], timeout=30)
    assert result.returncode == 3
    assert not result.ok


async def test_run_command_passes_env():
    code = "import os; print(os.environ['RENDER_KIT_TEST_VALUE'])"
    result = await run_command([sys.executable, "-c", code], timeout=30,
                               env={"RENDER_KIT_TEST_VALUE": "42"})
    assert result.stdout.strip() == "42"


async def test_run_command_timeout_kills():
    with pytest.raises(CommandTimeout) as exc_info:
        await run_command([sys.executable, "-c", "import time; time.sleep(30)"], timeout=0.3)
    assert exc_info.value.timeout == 0.3


async def test_missing_executable():
    with pytest.raises(CommandFailed) as exc_info:
        await run_command(["render-kit-no-such-binary"], timeout=5)
    assert exc_info.value.returncode is None


async def test_check_command_raises_on_failure():
    runner = FakeRunner({"false": (1, "bad things happened")})
    with pytest.raises(CommandFailed) as exc_info:
        await check_command(runner, ["false"], timeout=1)
    assert "bad things happened" in str(exc_info.value)


async def test_command_succeeds():
    runner = FakeRunner({"ok": 0, "bad": 1, "slow": CommandTimeout(["slow"], 1)})
    assert await command_succeeds(runner, ["ok"])
    assert not await command_succeeds(runner, ["bad"])
    assert not await command_succeeds(runner, ["slow"])
