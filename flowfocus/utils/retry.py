"""
重试工具模块
Retry Helper Module

提供指数退避重试：固定重试次数，延迟从基础值开始逐次翻倍。
Provides exponential-backoff retry: a fixed retry count with a delay that
doubles after every failed attempt.

没有抖动，也不支持取消；重试次数用尽后原样抛出最后一次的异常。
No jitter and no cancellation; once the budget is exhausted the last error is
re-raised unchanged.
"""

import functools
import logging
import time
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


def retry(
    fn: Callable[[], T],
    max_retries: int = 3,
    delay: float = 1.0,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
) -> T:
    """
    带指数退避的重试调用
    Call ``fn`` with exponential backoff.

    第 i 次重试前等待 ``delay * 2**i`` 秒，最多重试 ``max_retries`` 次，
    即总共最多调用 ``max_retries + 1`` 次。

    Args:
        fn: 无参可调用对象
        max_retries: 最大重试次数（不含首次调用）
        delay: 基础延迟（秒）
        retry_on: 需要重试的异常类型，其他异常直接抛出

    Returns:
        fn 的返回值

    Raises:
        最后一次调用抛出的异常

    Examples:
        >>> retry(lambda: 42)
        42
    """
    last_error: BaseException | None = None
    current_delay = delay

    for attempt in range(max_retries + 1):
        try:
            return fn()
        except retry_on as e:
            last_error = e
            if attempt < max_retries:
                logger.warning(
                    f"Attempt {attempt + 1}/{max_retries + 1} failed, "
                    f"retrying in {current_delay:.2f}s: {e}"
                )
                time.sleep(current_delay)
                current_delay *= 2

    raise last_error


def with_retry(
    max_retries: int = 3,
    delay: float = 1.0,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
):
    """
    装饰器形式的 retry
    Decorator form of :func:`retry`.

    Args:
        max_retries: 最大重试次数
        delay: 基础延迟（秒）
        retry_on: 需要重试的异常类型
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> T:
            return retry(
                lambda: func(*args, **kwargs),
                max_retries=max_retries,
                delay=delay,
                retry_on=retry_on,
            )
        return wrapper
    return decorator
