"""Scoped browser acquisition for converters.

The framework never shares a session between converters: each caller gets
its own and the context manager closes it on every exit path.
"""
import logging
from contextlib import asynccontextmanager

from .launcher import LaunchOptions

log = logging.getLogger(__name__)


@asynccontextmanager
async def open_browser(manager, options: LaunchOptions | None = None):
    """Launch a session through *manager* and yield it; always closes it."""
    session = await manager.launch(options)
    try:
        yield session
    finally:
        await session.close()


@asynccontextmanager
async def open_page(session, **page_options):
    """Yield a new page on *session*, closing it afterwards."""
    page = await session.new_page(**page_options)
    try:
        yield page
    finally:
        try:
            await page.close()
        except Exception as e:
            log.warning(f"Failed to close page cleanly: {e}")
