"""
Provider adapters.

One adapter per provider family. Each turns a GenerationRequest plus a secret
from the credential pool into a GenerationResult:

- ImagenProvider       Imagen predict (API key)
- FlashImageProvider   Gemini Flash Image generate/edit (API key)
- VideoProvider        Veo on Vertex AI (service account -> bearer token -> LRO)
- TranslateProvider    Gemini Flash text, used by the translate action

All HTTP goes through an injected httpx.AsyncClient. Transport failures,
non-2xx responses and malformed bodies raise ProviderError.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from core.config import EndpointConfig, VideoConfig
from core.credentials import CapabilityClass
from core.errors import ConfigurationError, ProviderError, SafetyBlockError
from services.identity import ServiceAccountCredentials, TokenMinter
from services.operations import OperationHandle, OperationPoller

from .models import GenerationMode, GenerationRequest, GenerationResult

logger = logging.getLogger(__name__)

# Gemini finish reasons that mean the content was refused
SAFETY_FINISH_REASONS = {"SAFETY", "IMAGE_SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST", "SPII"}

PERMISSIVE_SAFETY_SETTINGS = [
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_NONE"},
]

IMAGEN_SAFETY_SETTINGS = {
    "violence": "BLOCK_NONE",
    "sexual": "BLOCK_NONE",
    "hate": "BLOCK_NONE",
    "dangerous": "BLOCK_NONE",
}

TRANSLATE_SYSTEM_PROMPT = (
    "You are a translation assistant. Translate the following text into a clear, "
    "effective, and creative English prompt for an AI image generator. If the input "
    "is already in English, refine it for clarity and creative potential."
)


class HttpProvider:
    """Shared JSON-over-HTTP plumbing."""

    name: str = "provider"

    def __init__(self, http_client: httpx.AsyncClient):
        self.http_client = http_client

    async def _post_json(
        self,
        url: str,
        payload: dict[str, Any],
        api_key: Optional[str] = None,
        bearer_token: Optional[str] = None,
    ) -> dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        params = {}
        if api_key:
            params["key"] = api_key
        if bearer_token:
            headers["Authorization"] = f"Bearer {bearer_token}"

        try:
            response = await self.http_client.post(url, json=payload, headers=headers, params=params)
        except httpx.TimeoutException as e:
            raise ProviderError(
                f"{self.name} API timeout: {type(e).__name__}",
                error_code="TIMEOUT",
                provider=self.name,
            ) from e
        except httpx.RequestError as e:
            raise ProviderError(
                f"{self.name} API request failed: {type(e).__name__}: {e}",
                error_code="REQUEST_ERROR",
                provider=self.name,
            ) from e

        if response.is_error:
            error_text = response.text[:500]
            logger.error(f"{self.name} API error {response.status_code}: {error_text}")
            raise ProviderError(
                f"{self.name} API error ({response.status_code}): {error_text}",
                error_code=f"HTTP_{response.status_code}",
                provider=self.name,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(
                f"{self.name} API returned invalid JSON",
                error_code="MALFORMED_RESPONSE",
                provider=self.name,
            ) from e

        if not isinstance(data, dict):
            raise ProviderError(
                f"{self.name} API returned unexpected body",
                error_code="MALFORMED_RESPONSE",
                provider=self.name,
            )
        return data


class Provider(HttpProvider, ABC):
    """A generation backend selected by model."""

    capability_class: CapabilityClass

    @abstractmethod
    async def invoke(self, request: GenerationRequest, secret: str) -> GenerationResult:
        ...


class ImagenProvider(Provider):
    """Imagen predict-style image generation."""

    name = "imagen"
    capability_class = CapabilityClass.DEFAULT

    def __init__(self, http_client: httpx.AsyncClient, endpoints: EndpointConfig):
        super().__init__(http_client)
        self.endpoints = endpoints

    async def invoke(self, request: GenerationRequest, secret: str) -> GenerationResult:
        prompt = request.enhanced_prompt()
        payload = {
            "instances": [{"prompt": prompt}],
            "parameters": {"sampleCount": 1, "safetySettings": IMAGEN_SAFETY_SETTINGS},
        }

        data = await self._post_json(self.endpoints.imagen_predict_url, payload, api_key=secret)

        predictions = data.get("predictions") or []
        prediction = predictions[0] if predictions else {}
        image = prediction.get("bytesBase64Encoded")

        if not image:
            if prediction.get("raiFilteredReason"):
                raise SafetyBlockError(
                    "Generate failed: Image blocked due to safety settings.",
                    provider=self.name,
                )
            raise ProviderError(
                "Generate failed: No image data returned",
                error_code="NO_IMAGE",
                provider=self.name,
            )

        return GenerationResult(
            translated_prompt=prompt,
            base64=image,
            mime_type=prediction.get("mimeType", "image/png"),
            provider=self.name,
        )


class FlashImageProvider(Provider):
    """Gemini Flash Image multimodal generation and editing."""

    name = "gemini-flash-image"
    capability_class = CapabilityClass.FLASH_IMAGE

    def __init__(self, http_client: httpx.AsyncClient, endpoints: EndpointConfig):
        super().__init__(http_client)
        self.endpoints = endpoints

    def _build_payload(self, request: GenerationRequest) -> dict[str, Any]:
        parts: list[dict[str, Any]] = [{"text": request.enhanced_prompt()}]
        if request.mode == GenerationMode.EDIT:
            parts.append({"inlineData": {"mimeType": "image/png", "data": request.base_image}})

        return {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": {"responseModalities": ["TEXT", "IMAGE"]},
            "safetySettings": PERMISSIVE_SAFETY_SETTINGS,
        }

    async def invoke(self, request: GenerationRequest, secret: str) -> GenerationResult:
        data = await self._post_json(
            self.endpoints.flash_image_url, self._build_payload(request), api_key=secret
        )
        label = "Edit" if request.mode == GenerationMode.EDIT else "Generate"

        block_reason = (data.get("promptFeedback") or {}).get("blockReason")
        candidates = data.get("candidates") or []
        candidate = candidates[0] if candidates else {}
        parts = (candidate.get("content") or {}).get("parts") or []

        inline = next((p["inlineData"] for p in parts if p.get("inlineData")), None)
        if inline and inline.get("data"):
            return GenerationResult(
                translated_prompt=request.reported_prompt(),
                base64=inline["data"],
                mime_type=inline.get("mimeType", "image/png"),
                provider=self.name,
            )

        if block_reason or candidate.get("finishReason") in SAFETY_FINISH_REASONS:
            logger.warning(f"{self.name} refused content: {block_reason or candidate.get('finishReason')}")
            raise SafetyBlockError(
                f"{label} failed: Image blocked due to safety settings.",
                provider=self.name,
            )

        text = next((p.get("text") for p in parts if p.get("text")), None)
        logger.error(f"{self.name} returned no image data")
        raise ProviderError(
            f"{label} failed: {text or 'No image data returned'}",
            error_code="NO_IMAGE",
            provider=self.name,
        )


class VideoProvider(Provider):
    """
    Veo video generation on Vertex AI.

    Flow: mint a bearer token from the service account, start a
    predictLongRunning operation, then poll fetchPredictOperation within the
    poller's budget.
    """

    name = "veo"
    capability_class = CapabilityClass.VIDEO

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        video: VideoConfig,
        minter: TokenMinter,
        poller: OperationPoller,
    ):
        super().__init__(http_client)
        self.video = video
        self.minter = minter
        self.poller = poller

    def _build_payload(self, request: GenerationRequest) -> dict[str, Any]:
        parameters: dict[str, Any] = {"sampleCount": 1}
        if request.aspect_ratio:
            parameters["aspectRatio"] = request.aspect_ratio
        if self.video.storage_uri:
            parameters["storageUri"] = self.video.storage_uri
        return {"instances": [{"prompt": request.enhanced_prompt()}], "parameters": parameters}

    async def _fetch_operation(self, handle: OperationHandle) -> dict[str, Any]:
        return await self._post_json(
            f"{self.video.model_url}:fetchPredictOperation",
            {"operationName": handle.name},
            bearer_token=handle.bearer_token,
        )

    async def invoke(self, request: GenerationRequest, secret: str) -> GenerationResult:
        if not self.video.project_id:
            raise ConfigurationError(
                "Server configuration error: VEO_PROJECT_ID not set",
                error_code="MISSING_VIDEO_PROJECT",
            )

        credentials = ServiceAccountCredentials.from_json(secret)
        token = await self.minter.mint(credentials)

        data = await self._post_json(
            f"{self.video.model_url}:predictLongRunning",
            self._build_payload(request),
            bearer_token=token,
        )
        operation_name = data.get("name")
        if not operation_name:
            raise ProviderError(
                "No operation name in Veo response",
                error_code="NO_OPERATION",
                provider=self.name,
            )
        logger.info(f"Veo operation started: {operation_name}")

        handle = self.poller.open_handle(operation_name, token)
        response = await self.poller.wait(handle, self._fetch_operation)
        return self._parse_result(request, response)

    def _parse_result(self, request: GenerationRequest, response: dict[str, Any]) -> GenerationResult:
        videos = response.get("videos") or [
            sample.get("video") or {} for sample in response.get("generatedSamples") or []
        ]
        video = videos[0] if videos else {}
        storage_ref = video.get("gcsUri") or video.get("uri")
        inline = video.get("bytesBase64Encoded")

        if not storage_ref and not inline:
            if response.get("raiMediaFilteredCount"):
                reasons = response.get("raiMediaFilteredReasons") or []
                raise SafetyBlockError(
                    f"Video blocked due to safety settings. {' '.join(reasons)}".strip(),
                    provider=self.name,
                )
            raise ProviderError(
                "Video operation finished without a video",
                error_code="NO_VIDEO",
                provider=self.name,
            )

        return GenerationResult(
            translated_prompt=request.enhanced_prompt(),
            base64=inline,
            storage_ref=storage_ref,
            mime_type=video.get("mimeType", "video/mp4"),
            provider=self.name,
        )


class TranslateProvider(HttpProvider):
    """Prompt translation/refinement via Gemini Flash text."""

    name = "gemini-translate"

    def __init__(self, http_client: httpx.AsyncClient, endpoints: EndpointConfig):
        super().__init__(http_client)
        self.endpoints = endpoints

    async def translate(self, prompt: str, api_key: str) -> str:
        payload = {
            "contents": [{"parts": [{"text": f'Translate and refine: "{prompt}"'}]}],
            "systemInstruction": {"parts": [{"text": TRANSLATE_SYSTEM_PROMPT}]},
        }
        data = await self._post_json(self.endpoints.translate_url, payload, api_key=api_key)

        try:
            return data["candidates"][0]["content"]["parts"][0]["text"].strip()
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise ProviderError(
                "Failed to translate: unexpected response shape",
                error_code="MALFORMED_RESPONSE",
                provider=self.name,
            ) from e
