"""Общие зависимости роутеров."""

from fastapi import Header, HTTPException

from sentinel.service import SentinelService


def get_sentinel_from_main() -> SentinelService:
    """Получить сервис из main модуля."""
    from backend.main import sentinel
    if sentinel is None:
        raise HTTPException(503, "Sentinel not initialized")
    return sentinel


def get_caller(x_caller: str = Header(..., alias="X-Caller")) -> str:
    """Идентичность вызывающего (аналог msg.sender)."""
    caller = x_caller.strip()
    if not caller:
        raise HTTPException(400, "X-Caller header is required")
    return caller
