from __future__ import annotations

from typing import Any

import httpx


def _clean_params(params: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in params.items() if value is not None}


def unwrap(response: httpx.Response) -> Any:
    """Raise on error statuses and strip the ``{"status", "data"}`` envelope."""
    response.raise_for_status()
    if not response.content:
        return None
    payload = response.json()
    if isinstance(payload, dict) and payload.get("data") is not None:
        return payload["data"]
    return payload


async def list_posts(
    client: httpx.AsyncClient,
    *,
    page: int | None = None,
    page_size: int | None = None,
    status: str | None = None,
    platform: str | None = None,
    search: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
) -> Any:
    params = _clean_params(
        {
            "page": page,
            "pageSize": page_size,
            "status": status,
            "platform": platform,
            "search": search,
            "startDate": start_date,
            "endDate": end_date,
        }
    )
    return unwrap(await client.get("/posts", params=params))


async def create_post(client: httpx.AsyncClient, payload: dict) -> Any:
    return unwrap(await client.post("/posts", json=payload))


async def update_post(client: httpx.AsyncClient, post_id: str, payload: dict) -> Any:
    return unwrap(await client.put(f"/posts/{post_id}", json=payload))


async def delete_post(client: httpx.AsyncClient, post_id: str) -> Any:
    return unwrap(await client.delete(f"/posts/{post_id}"))


async def get_dashboard(client: httpx.AsyncClient, range_days: int | None = None) -> Any:
    params = _clean_params({"range": range_days})
    return unwrap(await client.get("/analytics/dashboard", params=params))
