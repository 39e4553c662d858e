"""
Асинхронные повторы с экспоненциальной задержкой.

Только для инфраструктуры (health-check'и, подключение к Redis).
Операции очереди заявок никогда не повторяются автоматически.
"""

import asyncio
import logging
import random
from functools import wraps
from typing import Tuple, Type

logger = logging.getLogger(__name__)


def retry_async(
    max_attempts: int = 3,
    base_delay: float = 0.5,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    jitter: float = 0.1,
):
    """
    Асинхронный декоратор с экспоненциальной задержкой.

    Args:
        max_attempts: Максимум попыток
        base_delay: Начальная задержка между попытками
        exceptions: Кортеж исключений, после которых пробуем снова
        jitter: Добавочный случайный шум
    """
    if max_attempts < 1:
        raise ValueError("max_attempts должен быть >= 1")

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            delay = base_delay

            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except exceptions as exc:
                    if attempt >= max_attempts:
                        raise
                    logger.warning(
                        f"{func.__name__} failed (attempt {attempt}/{max_attempts}): {exc}"
                    )
                    await asyncio.sleep(delay + random.uniform(0, jitter))
                    delay *= 2

        return wrapper

    return decorator
