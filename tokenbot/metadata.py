"""Prepares token descriptors from the public token list API."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping

import httpx
from tqdm import tqdm

from .utils.job_pool import JobDescriptor

CONTENT_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}


def detect_content_type(image_url: str) -> str:
    extension = image_url.split("?", 1)[0].rsplit("/", 1)[-1]
    extension = extension.rsplit(".", 1)[-1].lower() if "." in extension else ""
    return CONTENT_TYPES.get(extension, "image/png")


@dataclass(frozen=True)
class TokenInfo:
    name: str
    symbol: str
    description: str
    image_uri: str
    twitter: str | None = None
    telegram: str | None = None
    website: str | None = None

    @classmethod
    def from_list_item(cls, item: Mapping[str, Any]) -> "TokenInfo":
        info = item.get("token_info", item)
        return cls(
            name=str(info["name"]),
            symbol=str(info["symbol"]),
            description=str(info.get("description") or ""),
            image_uri=str(info["image_uri"]),
            twitter=info.get("twitter") or None,
            telegram=info.get("telegram") or None,
            website=info.get("website") or None,
        )

    def socials(self) -> Dict[str, str]:
        return {
            key: value
            for key, value in (("twitter", self.twitter), ("telegram", self.telegram), ("website", self.website))
            if value
        }


class MetadataClient:
    """Reads the token list and uploads images and metadata for the target network."""

    def __init__(
        self,
        *,
        token_list_base_url: str,
        upload_base_url: str,
        timeout: float,
        logger,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.logger = logger
        self._list_client = httpx.AsyncClient(
            base_url=token_list_base_url.rstrip("/"), timeout=timeout, transport=transport
        )
        self._upload_client = httpx.AsyncClient(
            base_url=upload_base_url.rstrip("/"), timeout=timeout, transport=transport
        )
        self._download_client = httpx.AsyncClient(timeout=timeout, transport=transport, follow_redirects=True)

    async def fetch_token_list(self, page: int, limit: int) -> List[TokenInfo]:
        response = await self._list_client.get(
            "/order/creation_time",
            params={"page": page, "limit": limit, "is_nsfw": "false", "direction": "ASC"},
            headers={"Accept": "application/json"},
        )
        response.raise_for_status()
        data = response.json()
        return [TokenInfo.from_list_item(item) for item in data.get("tokens", [])]

    async def upload_image(self, image_url: str) -> str:
        download = await self._download_client.get(image_url)
        download.raise_for_status()
        response = await self._upload_client.post(
            "/metadata/image",
            content=download.content,
            headers={"Content-Type": detect_content_type(image_url)},
        )
        response.raise_for_status()
        return str(response.json()["image_uri"])

    async def upload_metadata(self, token: TokenInfo, image_uri: str) -> str:
        payload: Dict[str, Any] = {
            "name": token.name,
            "symbol": token.symbol,
            "description": token.description,
            "image_uri": image_uri,
            **token.socials(),
        }
        response = await self._upload_client.post(
            "/metadata/metadata",
            json=payload,
            headers={"Accept": "application/json"},
        )
        response.raise_for_status()
        return str(response.json()["metadata_uri"])

    async def prepare(self, token: TokenInfo, *, mode: str) -> JobDescriptor:
        if mode == "upload":
            image_uri = await self.upload_image(token.image_uri)
            token_uri = await self.upload_metadata(token, image_uri)
        else:
            image_uri = token.image_uri
            token_uri = token.image_uri
        return JobDescriptor(
            name=token.name,
            symbol=token.symbol,
            token_uri=token_uri,
            description=token.description,
            image_uri=image_uri,
            twitter=token.twitter,
            telegram=token.telegram,
            website=token.website,
        )

    async def aclose(self) -> None:
        for client in (self._list_client, self._upload_client, self._download_client):
            await client.aclose()


async def fetch_and_prepare(
    client: MetadataClient,
    *,
    page: int,
    limit: int,
    mode: str,
    request_delay: float = 0.5,
    logger,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    progress: bool = True,
) -> List[JobDescriptor]:
    """Prepare every token on one page; individual failures are skipped."""

    logger.info("Fetching tokens from page %d (limit: %d, mode: %s)", page, limit, mode)
    tokens = await client.fetch_token_list(page, limit)
    logger.info("Processing %d token(s) from page %d", len(tokens), page)

    prepared: List[JobDescriptor] = []
    for token in tqdm(tokens, desc="Preparing metadata", unit="token", disable=not progress):
        try:
            prepared.append(await client.prepare(token, mode=mode))
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            logger.error("Failed to process token %s: %s", token.symbol, exc)
            continue
        logger.debug("Prepared %s (%d/%d)", token.symbol, len(prepared), len(tokens))
        if request_delay:
            await sleep(request_delay)

    logger.info("Successfully prepared %d token(s)", len(prepared))
    return prepared


__all__ = ["MetadataClient", "TokenInfo", "detect_content_type", "fetch_and_prepare"]
