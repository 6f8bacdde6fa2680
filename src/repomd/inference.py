"""Embedding computation through the inference API.

Three models are exposed, in two vector spaces:

- text embeddings (TEXT space) for post similarity
- CLIP embeddings of a text or of an image (CLIP space) for media search
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from repomd.cache.request import RequestCache
from repomd.content.models import EmbeddingSpace
from repomd.errors import FetchError, InvalidResponseError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://api.repo.md/v1"

IMAGE_URL_PREFIXES = ("http://", "https://", "data:")


@dataclass(frozen=True)
class EmbeddingResult:
    """An embedding returned by the inference API."""

    embedding: list[float]
    space: EmbeddingSpace
    model: str | None = None
    dimensions: int | None = None


class InferenceClient:
    """POSTs to the inference endpoints; responses are never cached."""

    def __init__(self, requests: RequestCache, api_base_url: str = DEFAULT_API_BASE_URL):
        self.requests = requests
        self.api_base_url = api_base_url.rstrip("/")

    async def _post(self, path: str, payload: dict[str, Any], space: EmbeddingSpace) -> EmbeddingResult:
        url = f"{self.api_base_url}{path}"
        result = await self.requests.fetch_json(
            url,
            method="POST",
            body=payload,
            use_cache=False,
            error_message=f"Error fetching inference API route: {path}",
        )

        if not isinstance(result, dict):
            raise InvalidResponseError(f"Unexpected inference response from {url}", url=url)
        if result.get("success") is False:
            raise FetchError(
                result.get("error") or result.get("message") or f"Inference failed: {path}",
                url=url,
            )

        data = result.get("data")
        embedding = data.get("embedding") if isinstance(data, dict) else None
        if not isinstance(embedding, list) or not embedding:
            raise InvalidResponseError(f"No embedding in inference response from {url}", url=url)

        logger.debug(f"Computed {space.value} embedding ({len(embedding)} dimensions) via {path}")
        return EmbeddingResult(
            embedding=[float(value) for value in embedding],
            space=space,
            model=data.get("model"),
            dimensions=data.get("dimensions", len(embedding)),
        )

    async def compute_text_embedding(
        self, text: str, instruction: str | None = None
    ) -> EmbeddingResult:
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("Text is required to compute a text embedding")
        payload: dict[str, Any] = {"text": text}
        if instruction:
            payload["instruction"] = instruction
        return await self._post("/inference/text-embedding", payload, EmbeddingSpace.TEXT)

    async def compute_clip_text_embedding(self, text: str) -> EmbeddingResult:
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("Text is required to compute a CLIP text embedding")
        return await self._post("/inference/clip-by-text", {"text": text}, EmbeddingSpace.CLIP)

    async def compute_clip_image_embedding(self, image: str) -> EmbeddingResult:
        """Embed an image given as a URL (http(s) or data URL) or raw base64 data."""
        if not isinstance(image, str) or not image.strip():
            raise ValidationError("An image URL or image data is required")
        if image.startswith(IMAGE_URL_PREFIXES):
            payload = {"imageUrl": image}
        else:
            payload = {"imageData": image}
        return await self._post("/inference/clip-by-image", payload, EmbeddingSpace.CLIP)
