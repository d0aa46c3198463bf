"""Log every tool call and how long it took."""

import functools
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)


def tool_logger(
    func: Callable[..., Awaitable[Dict[str, Any]]],
    config: Optional[Dict[str, Any]] = None,
):
    """Wrap an async tool with call/result logging.

    Args:
        func: Tool function
        config: Server configuration as a dict; ``log_level`` DEBUG also logs
            call arguments
    """
    log_arguments = bool(config) and str(config.get("log_level", "")).upper() == "DEBUG"

    @functools.wraps(func)
    async def wrapper(*args, **kwargs) -> Dict[str, Any]:
        name = func.__name__
        if log_arguments:
            shown = {k: v for k, v in kwargs.items() if k != "ctx"}
            logger.debug(f"Tool {name} called with {shown}")

        start = time.perf_counter()
        try:
            result = await func(*args, **kwargs)
        except Exception:
            elapsed = time.perf_counter() - start
            logger.error(f"Tool {name} raised after {elapsed:.3f}s")
            raise

        elapsed = time.perf_counter() - start
        if isinstance(result, dict) and result.get("success") is False:
            logger.warning(f"Tool {name} failed in {elapsed:.3f}s: {result.get('error')}")
        else:
            logger.info(f"Tool {name} completed in {elapsed:.3f}s")
        return result

    return wrapper
