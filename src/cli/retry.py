"""Retry utilities with exponential backoff."""

import logging

import structlog
from tenacity import (
    Retrying,
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .config_models import RetryConfig

logger = structlog.stdlib.get_logger(__name__)


def http_retry(
    max_attempts: int = 3,
    min_wait: float = 0.5,
    max_wait: float = 4.0,
    exceptions: tuple = (Exception,),
):
    """Retry decorator for HTTP calls (works on sync and async functions).

    Args:
        max_attempts: Max retry attempts
        min_wait: Min wait between retries (seconds)
        max_wait: Max wait between retries (seconds)
        exceptions: Exception types to retry on
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=min_wait or 1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(exceptions),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


def store_retrying(config: RetryConfig, exceptions: tuple = (Exception,)) -> Retrying:
    """Build a Retrying controller for key-value store calls.

    Store calls are short and local, so waits are sub-second.

    Args:
        config: Retry section of the app config
        exceptions: Exception types to retry on
    """
    return Retrying(
        stop=stop_after_attempt(config.max_attempts),
        wait=wait_exponential(
            multiplier=config.min_wait or 0.01,
            min=config.min_wait,
            max=config.max_wait,
        ),
        retry=retry_if_exception_type(exceptions),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
