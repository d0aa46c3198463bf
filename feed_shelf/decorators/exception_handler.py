"""Turn exceptions escaping a tool into an error result."""

import functools
import logging
from typing import Any, Awaitable, Callable, Dict

logger = logging.getLogger(__name__)


def exception_handler(func: Callable[..., Awaitable[Dict[str, Any]]]):
    """Wrap an async tool so unexpected errors become {"success": False, ...}.

    Expected failures are already reported by the tools themselves; this only
    catches what slips through, and logs it with its traceback.
    """

    @functools.wraps(func)
    async def wrapper(*args, **kwargs) -> Dict[str, Any]:
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            logger.exception(f"Unhandled error in tool {func.__name__}")
            return {
                "success": False,
                "error": f"{type(e).__name__}: {e}",
            }

    return wrapper
