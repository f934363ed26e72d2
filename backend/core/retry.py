"""
Single retry policy for every generation call.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from core.config import RETRY_BASE_DELAY_MS, RETRY_MAX_ATTEMPTS
from core.errors import GenerationError, TransientError, ValidationError

logger = logging.getLogger(__name__)

AdapterCall = Callable[..., Awaitable[Any]]
Sleep = Callable[[float], Awaitable[Any]]


async def with_retry(
    call: AdapterCall,
    operation: Any,
    params: Dict[str, Any],
    max_attempts: int = RETRY_MAX_ATTEMPTS,
    base_delay_ms: int = RETRY_BASE_DELAY_MS,
    sleep: Sleep = asyncio.sleep,
) -> Any:
    """
    Invoke ``call(operation, params, attempt=...)`` with exponential backoff.

    ValidationError is raised after the first attempt. FormatError and
    TransientError are retried, waiting ``base_delay_ms * 2**attempt`` between
    attempts. Once attempts are exhausted the last error is re-raised as is,
    so its message reaches the caller unchanged.

    Any other exception is wrapped in a TransientError carrying its text.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    last_error: Optional[GenerationError] = None

    for attempt in range(max_attempts):
        try:
            return await call(operation, params, attempt=attempt)
        except ValidationError:
            raise
        except GenerationError as e:
            last_error = e
        except Exception as e:
            last_error = TransientError(str(e) or e.__class__.__name__)

        if not last_error.retryable:
            raise last_error

        if attempt < max_attempts - 1:
            delay = base_delay_ms * (2 ** attempt) / 1000.0
            logger.warning(
                "%s failed (attempt %d/%d), retrying in %.1fs: %s",
                getattr(operation, "value", operation),
                attempt + 1,
                max_attempts,
                delay,
                last_error,
            )
            await sleep(delay)

    logger.warning(
        "%s failed after %d attempts: %s",
        getattr(operation, "value", operation),
        max_attempts,
        last_error,
    )
    raise last_error


@dataclass
class RetryPolicy:
    """Retry settings bound to one adapter call function."""

    call: AdapterCall
    max_attempts: int = RETRY_MAX_ATTEMPTS
    base_delay_ms: int = RETRY_BASE_DELAY_MS
    sleep: Sleep = asyncio.sleep

    async def run(self, operation: Any, params: Dict[str, Any]) -> Any:
        return await with_retry(
            self.call,
            operation,
            params,
            max_attempts=self.max_attempts,
            base_delay_ms=self.base_delay_ms,
            sleep=self.sleep,
        )
