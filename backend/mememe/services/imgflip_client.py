"""Client for the Imgflip template catalogue."""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from mememe.core.config import Settings, get_settings
from mememe.core.metrics import observe_template_source_request
from mememe.core.telemetry import add_traceparent_header
from mememe.services.template_dto import ProviderTemplate
from mememe.services.template_errors import TemplateProviderError

logger = logging.getLogger(__name__)

SOURCE_NAME = "imgflip"


def map_provider_template(data: dict[str, Any]) -> ProviderTemplate:
    """Map one ``get_memes`` entry to a ProviderTemplate."""
    return ProviderTemplate(
        id=str(data["id"]),
        name=str(data.get("name") or ""),
        url=str(data.get("url") or ""),
        width=int(data.get("width") or 0),
        height=int(data.get("height") or 0),
        box_count=int(data.get("box_count") or 0),
        captions=int(data.get("captions") or 0),
    )


class ImgflipClient:
    """Async wrapper around ``GET /get_memes``."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._transport = transport

    async def get_templates(self) -> list[ProviderTemplate]:
        """Fetch the provider's template list, most used first."""
        url = f"{self._settings.imgflip_api_url.rstrip('/')}/get_memes"
        start = time.perf_counter()

        try:
            async with httpx.AsyncClient(
                timeout=self._settings.imgflip_timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.get(url, headers=add_traceparent_header({}))
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            observe_template_source_request(
                SOURCE_NAME, "error", time.perf_counter() - start
            )
            raise TemplateProviderError(
                "Failed to fetch templates from Imgflip."
            ) from exc

        if not isinstance(payload, dict) or not payload.get("success"):
            observe_template_source_request(
                SOURCE_NAME, "error", time.perf_counter() - start
            )
            raise TemplateProviderError("Imgflip API returned an unsuccessful response.")

        try:
            memes = payload["data"]["memes"]
            templates = [map_provider_template(item) for item in memes]
        except (KeyError, TypeError, ValueError) as exc:
            observe_template_source_request(
                SOURCE_NAME, "error", time.perf_counter() - start
            )
            raise TemplateProviderError("Malformed Imgflip template payload.") from exc

        observe_template_source_request(
            SOURCE_NAME, "success", time.perf_counter() - start
        )
        logger.debug("Fetched %d templates from Imgflip", len(templates))
        return templates


__all__ = ["ImgflipClient", "map_provider_template"]
