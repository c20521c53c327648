"""Image generation and editing over an ordered model hierarchy.

The hierarchy is a best-effort waterfall: candidates are tried in the
caller's order and the first success wins. Single-model failures are logged
and skipped; only exhaustion is raised.
"""
from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Any, Iterable

import httpx
from loguru import logger

from nanobook.config import settings
from nanobook.errors import AllImageModelsFailedError, EmptyImagePayloadError
from nanobook.llm_client import GenerationRequest, LLMClient
from nanobook.services.prompt_store import render_prompt

ASPECT_RATIO = "3:4"
HIGH_RES_SIZE = "2K"
DEFAULT_MIME_TYPE = "image/png"


@dataclass(frozen=True, slots=True)
class ImageModel:
    id: str
    label: str = ""
    supports_high_res: bool = False
    supports_edit: bool = False


KNOWN_IMAGE_MODELS: dict[str, ImageModel] = {
    model.id: model
    for model in (
        ImageModel(
            "google/gemini-3-pro-image-preview",
            "Gemini Pro Image (best quality, restricted)",
            supports_high_res=True,
            supports_edit=True,
        ),
        ImageModel(
            "google/gemini-2.5-flash-image",
            "Gemini Flash Image (fast, standard)",
            supports_edit=True,
        ),
        ImageModel("black-forest-labs/flux.2-pro", "FLUX.2 Pro (backup)"),
    )
}

DEFAULT_EDIT_MODEL = "google/gemini-2.5-flash-image"


def to_data_uri(payload: str, mime_type: str = DEFAULT_MIME_TYPE) -> str:
    """Normalize an inline payload (data URI or bare base64) to a data URI."""
    payload = payload.strip()
    if payload.startswith("data:"):
        return payload
    return f"data:{mime_type};base64,{payload}"


class ImageService:
    def __init__(
        self,
        llm: LLMClient,
        *,
        default_hierarchy: Iterable[str] | None = None,
        registry: dict[str, ImageModel] | None = None,
        retries: int | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.llm = llm
        self.default_hierarchy = list(default_hierarchy or settings.image_model_list)
        self.registry = dict(KNOWN_IMAGE_MODELS if registry is None else registry)
        self.retries = settings.image_model_retries if retries is None else max(int(retries), 0)
        self._http_transport = http_transport

    def resolve(self, model_id: str) -> ImageModel:
        # Unknown ids are tried with the most conservative capabilities.
        return self.registry.get(model_id) or ImageModel(id=model_id)

    def resolve_hierarchy(self, model_hierarchy: Iterable[str] | None) -> list[ImageModel]:
        ids = list(model_hierarchy) if model_hierarchy else self.default_hierarchy
        seen: set[str] = set()
        resolved: list[ImageModel] = []
        for model_id in ids:
            if model_id in seen:
                continue
            seen.add(model_id)
            resolved.append(self.resolve(model_id))
        return resolved

    async def _download(self, url: str) -> str:
        async with httpx.AsyncClient(
            timeout=settings.image_download_timeout_s,
            follow_redirects=True,
            transport=self._http_transport,
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
        mime_type = response.headers.get("content-type", DEFAULT_MIME_TYPE).split(";")[0].strip()
        encoded = base64.b64encode(response.content).decode("ascii")
        return f"data:{mime_type or DEFAULT_MIME_TYPE};base64,{encoded}"

    async def _attempt(
        self,
        model: ImageModel,
        contents: str | list[dict[str, Any]],
        image_config: dict[str, Any] | None,
        caller: str,
    ) -> str:
        response = await self.llm.generate(
            GenerationRequest(
                model=model.id,
                contents=contents,
                modalities=["image", "text"],
                image_config=image_config,
            ),
            caller=caller,
            max_retries=self.retries,
        )
        if not response.images:
            raise EmptyImagePayloadError(f"No image payload in response from {model.id}")
        payload = response.images[0]
        if payload.startswith(("http://", "https://")):
            return await self._download(payload)
        return to_data_uri(payload)

    async def _waterfall(
        self,
        operation: str,
        candidates: list[ImageModel],
        contents: str | list[dict[str, Any]],
        config_for: Any,
        caller: str,
    ) -> str:
        attempted: list[str] = []
        last_error: Exception | None = None
        for model in candidates:
            attempted.append(model.id)
            logger.info(f"Attempting to {operation} with {model.id}...")
            try:
                return await self._attempt(model, contents, config_for(model), caller)
            except Exception as exc:
                last_error = exc
                logger.warning(f"Model {model.id} failed to {operation}: {exc}")
        raise AllImageModelsFailedError(operation, attempted, last_error)

    async def generate_image(
        self,
        description: str,
        style: str | None = None,
        high_res: bool = False,
        model_hierarchy: Iterable[str] | None = None,
    ) -> str:
        """Generate one image and return it as a data URI."""
        prompt = render_prompt(
            "image.generate",
            style=style or settings.default_visual_style,
            subject=description,
        )

        def config_for(model: ImageModel) -> dict[str, Any]:
            config: dict[str, Any] = {"aspect_ratio": ASPECT_RATIO}
            if high_res and model.supports_high_res:
                config["image_size"] = HIGH_RES_SIZE
            return config

        return await self._waterfall(
            "generate an image",
            self.resolve_hierarchy(model_hierarchy),
            prompt,
            config_for,
            caller="image_generate",
        )

    async def edit_image(
        self,
        existing_image: str,
        edit_instruction: str,
        model_hierarchy: Iterable[str] | None = None,
    ) -> str:
        """Edit an existing image; only edit-capable models are tried."""
        candidates = [m for m in self.resolve_hierarchy(model_hierarchy) if m.supports_edit]
        if not candidates:
            candidates = [self.resolve(DEFAULT_EDIT_MODEL)]

        contents = [
            {"type": "image_url", "image_url": {"url": to_data_uri(existing_image)}},
            {"type": "text", "text": render_prompt("image.edit", instruction=edit_instruction)},
        ]
        return await self._waterfall(
            "edit the image",
            candidates,
            contents,
            lambda _model: None,
            caller="image_edit",
        )
