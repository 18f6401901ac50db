"""browser: Chromium discovery, launch and process-wide lifecycle.

Works with a system-installed Chrome/Chromium/Edge or Playwright's bundled
Chromium (never on musl).
"""
from .locator import BrowserLocator, candidates_for, CANDIDATES  # noqa: F401
from .launcher import (  # noqa: F401
    BrowserLauncher,
    BrowserSession,
    BrowserHandle,
    LaunchOptions,
    LaunchState,
    build_launch_args,
)
from .bundled import BundledBrowser  # noqa: F401
from .lifecycle import BrowserLifecycleManager, BrowserStatus, LifecycleState  # noqa: F401
from .session import open_browser, open_page  # noqa: F401
