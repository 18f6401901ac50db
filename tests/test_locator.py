"""Tests for BrowserLocator candidate search and bundled fallback."""
import itertools
from unittest.mock import AsyncMock

import pytest
from fakes import ALPINE, ALPINE_CHROMIUM, CHROME, DEBIAN, MACOS, MUSL_UNKNOWN, WINDOWS

from render_kit.browser.locator import BrowserLocator, candidates_for
from render_kit.browser.remediation import ALPINE_INSTALL_COMMAND
from render_kit.errors import BrowserNotFoundError, ErrorCode

BUNDLED = "/home/app/.render-kit/browsers/chromium-1105/chrome-linux/chrome"


def _exists_in(*paths):
    present = set(paths)
    return lambda p: p in present


async def test_debian_system_browser_skips_bundled():
    resolver = AsyncMock(return_value=BUNDLED)
    locator = BrowserLocator(exists=_exists_in(CHROME, BUNDLED), bundled_resolver=resolver)

    assert await locator.locate(DEBIAN) == CHROME
    resolver.assert_not_awaited()


async def test_alpine_never_consults_bundled():
    resolver = AsyncMock(return_value=BUNDLED)
    locator = BrowserLocator(exists=_exists_in(BUNDLED), bundled_resolver=resolver)

    with pytest.raises(BrowserNotFoundError) as exc_info:
        await locator.locate(ALPINE)
    assert ALPINE_INSTALL_COMMAND in str(exc_info.value)
    assert "musl" in str(exc_info.value)
    assert exc_info.value.code is ErrorCode.BROWSER_NOT_FOUND
    assert exc_info.value.details["checked"] == list(candidates_for(ALPINE))
    resolver.assert_not_awaited()


async def test_musl_libc_without_alpine_marker_is_treated_like_alpine():
    resolver = AsyncMock(return_value=BUNDLED)
    locator = BrowserLocator(exists=_exists_in(BUNDLED), bundled_resolver=resolver)
    with pytest.raises(BrowserNotFoundError):
        await locator.locate(MUSL_UNKNOWN)
    resolver.assert_not_awaited()


async def test_musl_candidate_order_prefers_apk_chromium():
    exists = _exists_in(ALPINE_CHROMIUM, CHROME)
    assert await BrowserLocator(exists=exists).locate(ALPINE) == ALPINE_CHROMIUM
    assert await BrowserLocator(exists=exists).locate(DEBIAN) == CHROME


async def test_glibc_falls_back_to_bundled():
    resolver = AsyncMock(return_value=BUNDLED)
    locator = BrowserLocator(exists=_exists_in(BUNDLED), bundled_resolver=resolver)
    assert await locator.locate(DEBIAN) == BUNDLED
    resolver.assert_awaited_once()
    assert locator.last_checked[-1] == BUNDLED


async def test_prefer_system_only_skips_bundled():
    resolver = AsyncMock(return_value=BUNDLED)
    locator = BrowserLocator(exists=_exists_in(BUNDLED), bundled_resolver=resolver)
    with pytest.raises(BrowserNotFoundError):
        await locator.locate(DEBIAN, prefer_system_only=True)
    resolver.assert_not_awaited()


async def test_bundled_path_must_exist():
    resolver = AsyncMock(return_value=BUNDLED)
    locator = BrowserLocator(exists=_exists_in(), bundled_resolver=resolver)
    with pytest.raises(BrowserNotFoundError):
        await locator.locate(DEBIAN)


async def test_bundled_resolver_error_becomes_not_found():
    resolver = AsyncMock(side_effect=RuntimeError("driver missing"))
    locator = BrowserLocator(exists=_exists_in(), bundled_resolver=resolver)
    with pytest.raises(BrowserNotFoundError):
        await locator.locate(DEBIAN)


async def test_not_found_messages_differ_per_platform():
    messages = []
    for profile in (ALPINE, WINDOWS, MACOS, DEBIAN):
        with pytest.raises(BrowserNotFoundError) as exc_info:
            await BrowserLocator(exists=_exists_in()).locate(profile)
        messages.append(str(exc_info.value))
    assert len(set(messages)) == 4
    assert "Windows" in messages[1]
    assert "/Applications" in messages[2]
    assert "playwright install chromium" in messages[3]


@pytest.mark.parametrize("profile", [ALPINE, MUSL_UNKNOWN, DEBIAN, WINDOWS, MACOS])
async def test_located_path_always_exists(profile):
    universe = list(candidates_for(profile))[:3] + [BUNDLED]
    for r in range(len(universe) + 1):
        for present in itertools.combinations(universe, r):
            exists = _exists_in(*present)
            locator = BrowserLocator(exists=exists, bundled_resolver=AsyncMock(return_value=BUNDLED))
            try:
                path = await locator.locate(profile)
            except BrowserNotFoundError:
                continue
            assert exists(path)


def test_resolve_pinned():
    locator = BrowserLocator(exists=_exists_in("/opt/chrome/chrome"))
    assert locator.resolve_pinned("/opt/chrome/chrome") == "/opt/chrome/chrome"
    assert locator.resolve_pinned("/missing/chrome") is None
    assert locator.resolve_pinned("") is None
