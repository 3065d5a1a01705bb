"""
Generation request/result types and the closed set of supported models.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from core.credentials import CapabilityClass
from core.errors import ValidationError


class GenerationModel(str, Enum):
    """Models accepted at the API boundary."""
    IMAGEN_3 = "imagen-3.0-generate"
    FLASH_IMAGE = "gemini-2.5-flash-image-preview"
    VEO_2 = "veo-2.0-generate"

    @property
    def capability_class(self) -> CapabilityClass:
        return MODEL_CAPABILITIES[self]

    @classmethod
    def parse(cls, value: Any) -> "GenerationModel":
        """Validate a wire value. Unknown models never get past this point."""
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(
                f"Unknown model: {value!r}", error_code="UNKNOWN_MODEL"
            ) from None


MODEL_CAPABILITIES = {
    GenerationModel.IMAGEN_3: CapabilityClass.DEFAULT,
    GenerationModel.FLASH_IMAGE: CapabilityClass.FLASH_IMAGE,
    GenerationModel.VEO_2: CapabilityClass.VIDEO,
}


class GenerationMode(str, Enum):
    GENERATE = "generate"
    EDIT = "edit"


@dataclass(frozen=True)
class GenerationRequest:
    """Provider-agnostic parameters for one generation."""
    prompt: str
    model: GenerationModel
    rotation_index: int = 0
    aspect_ratio: Optional[str] = None
    styles: tuple[str, ...] = ()
    base_image: Optional[str] = field(default=None, repr=False)
    mode: GenerationMode = GenerationMode.GENERATE

    def __post_init__(self):
        if not isinstance(self.prompt, str) or not self.prompt.strip():
            raise ValidationError("Prompt is required", error_code="MISSING_PROMPT")
        if self.rotation_index < 0:
            raise ValidationError("rotationIndex must be >= 0", error_code="INVALID_ROTATION_INDEX")
        if self.mode == GenerationMode.EDIT and not self.base_image:
            raise ValidationError(
                "Base image is required for editing", error_code="MISSING_BASE_IMAGE"
            )

    @classmethod
    def from_payload(
        cls,
        model: Any,
        rotation_index: int,
        payload: dict[str, Any],
    ) -> "GenerationRequest":
        """Build a request from a job payload (camelCase keys, as on the wire)."""
        if not isinstance(payload, dict):
            raise ValidationError("jobPayload must be an object", error_code="INVALID_PAYLOAD")

        prompt = payload.get("prompt", "")
        if prompt is None:
            prompt = ""
        if not isinstance(prompt, str):
            raise ValidationError("prompt must be a string", error_code="INVALID_PAYLOAD")

        for name in ("aspectRatio", "baseImage"):
            if payload.get(name) is not None and not isinstance(payload[name], str):
                raise ValidationError(f"{name} must be a string", error_code="INVALID_PAYLOAD")

        styles = payload.get("styles")
        if styles is None:
            styles = []
        if not isinstance(styles, list) or not all(isinstance(s, str) for s in styles):
            raise ValidationError("styles must be a list of strings", error_code="INVALID_PAYLOAD")

        try:
            mode = GenerationMode(payload.get("mode", GenerationMode.GENERATE.value))
        except (ValueError, TypeError):
            raise ValidationError(
                f"Unknown mode: {payload.get('mode')!r}", error_code="INVALID_PAYLOAD"
            ) from None

        parsed_model = GenerationModel.parse(model)
        if mode == GenerationMode.EDIT:
            # Edits always run on the multimodal model
            parsed_model = GenerationModel.FLASH_IMAGE

        return cls(
            prompt=prompt,
            model=parsed_model,
            rotation_index=rotation_index,
            aspect_ratio=payload.get("aspectRatio"),
            styles=tuple(styles),
            base_image=payload.get("baseImage"),
            mode=mode,
        )

    def enhanced_prompt(self) -> str:
        """Prompt with style and aspect-ratio hints appended."""
        if self.mode == GenerationMode.EDIT:
            return self.prompt

        prompt = self.prompt
        if self.styles:
            prompt += f", {', '.join(self.styles)} style"
        if self.aspect_ratio:
            prompt += f", aspect ratio {self.aspect_ratio}"
        return prompt

    def reported_prompt(self) -> str:
        """The prompt echoed back to the client as translatedPrompt."""
        if self.mode == GenerationMode.EDIT:
            return f"[Edit] {self.prompt}"
        return self.enhanced_prompt()


@dataclass(frozen=True)
class GenerationResult:
    """Output of one provider call."""
    translated_prompt: str
    base64: Optional[str] = field(default=None, repr=False)
    storage_ref: Optional[str] = None
    mime_type: Optional[str] = None
    provider: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"translatedPrompt": self.translated_prompt}
        if self.base64 is not None:
            data["base64"] = self.base64
        if self.storage_ref is not None:
            data["storageRef"] = self.storage_ref
        if self.mime_type is not None:
            data["mimeType"] = self.mime_type
        return data

    def summary_payload(self) -> str:
        """What the record sink stores as the result payload."""
        return self.base64 or self.storage_ref or ""
