# src/storefront/adapters/gemini.py
from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import BaseModel, Field, ValidationError

from storefront.domain.models import GenerateOptions, GenerationResult, GroundingLink
from storefront.domain.ports import ContentGeneratorPort, RemoteContentError

logger = logging.getLogger(__name__)

_OPERATION = "generate_content"

# ---------------------------------------------------------------------------
# Interne Rohdaten-Schemas (für typisiertes Parsing der Gemini-Response)
# ---------------------------------------------------------------------------


class _Part(BaseModel):
    text: str | None = None


class _Content(BaseModel):
    parts: list[_Part] = Field(default_factory=list)


class _WebChunk(BaseModel):
    uri: str | None = None
    title: str | None = None


class _GroundingChunk(BaseModel):
    web: _WebChunk | None = None


class _GroundingMetadata(BaseModel):
    grounding_chunks: list[_GroundingChunk] = Field(default_factory=list, alias="groundingChunks")

    model_config = {"populate_by_name": True}


class _Candidate(BaseModel):
    content: _Content | None = None
    grounding_metadata: _GroundingMetadata | None = Field(default=None, alias="groundingMetadata")

    model_config = {"populate_by_name": True}


class _GenerateContentResponse(BaseModel):
    candidates: list[_Candidate] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Adapter-Implementierung
# ---------------------------------------------------------------------------


class GeminiContentAdapter(ContentGeneratorPort):
    """
    Adapter für die Gemini ``generateContent`` REST-API.
    Liefert Antworttext und Grounding-Links in einheitlicher Form.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: str,
        model: str,
        base_url: str,
        timeout: float,
    ) -> None:
        self._client = http_client
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    async def generate(self, prompt: str, options: GenerateOptions) -> GenerationResult:
        url = f"{self._base_url}/models/{self._model}:generateContent"
        try:
            response = await self._client.post(
                url,
                json=self._build_body(prompt, options),
                headers={"x-goog-api-key": self._api_key},
                timeout=self._timeout,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RemoteContentError(_OPERATION, str(e)) from e
        except httpx.RequestError as e:
            raise RemoteContentError(_OPERATION, f"Connection error: {e}") from e

        try:
            raw = _GenerateContentResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise RemoteContentError(_OPERATION, f"Unreadable response body: {e}") from e

        return self._to_result(raw)

    @staticmethod
    def _build_body(prompt: str, options: GenerateOptions) -> dict[str, Any]:
        body: dict[str, Any] = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}

        generation_config: dict[str, Any] = {}
        if options.response_schema is not None:
            generation_config["responseMimeType"] = "application/json"
            generation_config["responseSchema"] = options.response_schema
        if options.temperature is not None:
            generation_config["temperature"] = options.temperature
        if generation_config:
            body["generationConfig"] = generation_config

        if options.use_web_grounding:
            body["tools"] = [{"google_search": {}}]
        return body

    @staticmethod
    def _to_result(raw: _GenerateContentResponse) -> GenerationResult:
        if not raw.candidates:
            logger.warning("Gemini response contained no candidates")
            return GenerationResult()

        candidate = raw.candidates[0]
        text = ""
        if candidate.content is not None:
            text = "".join(part.text for part in candidate.content.parts if part.text)

        links = []
        if candidate.grounding_metadata is not None:
            for chunk in candidate.grounding_metadata.grounding_chunks:
                if chunk.web and chunk.web.uri and chunk.web.title:
                    links.append(GroundingLink(url=chunk.web.uri, title=chunk.web.title))

        return GenerationResult(text=text, grounding_links=links)
