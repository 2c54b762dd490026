"""Cryptocurrency market endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query

from ..services.crypto import CryptoService


def create_crypto_router(service: CryptoService) -> APIRouter:
    router = APIRouter(prefix="/api", tags=["crypto"])

    @router.get("/crypto")
    async def markets() -> list[dict]:
        return await service.markets()

    # Registered before /crypto/{crypto_id} so "chat" is not taken for an id.
    @router.get("/crypto/chat")
    async def chart(
        crypto_id: str = Query("bitcoin", alias="cryptoId"),
        days: int = Query(7),
    ) -> Any:
        return await service.chart(crypto_id, days)

    @router.get("/crypto/history/{crypto_id}")
    async def history(crypto_id: str, days: int = Query(7)) -> dict:
        return await service.history(crypto_id, days)

    @router.get("/crypto/{crypto_id}")
    async def detail(crypto_id: str) -> dict:
        return await service.detail(crypto_id)

    return router
