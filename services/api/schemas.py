"""
Request models for the single action endpoint.

The body is a tagged union on `action`. Field names are camelCase on the wire.
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


class ActionModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class AuthAction(ActionModel):
    action: Literal["auth"]
    password: str


class TranslateAction(ActionModel):
    action: Literal["translate"]
    prompt: str = Field(min_length=1)
    rotation_index: int = Field(default=0, ge=0)


class GenerateAction(ActionModel):
    action: Literal["generate_fg"]
    prompt: str = Field(min_length=1)
    model: str
    rotation_index: int = Field(default=0, ge=0)
    aspect_ratio: Optional[str] = None
    styles: list[str] = Field(default_factory=list)


class EditAction(ActionModel):
    action: Literal["edit_fg"]
    prompt: str = Field(min_length=1)
    model: Optional[str] = None  # edits always run on the Flash Image model
    rotation_index: int = Field(default=0, ge=0)
    base_image: Optional[str] = None


class SubmitJobAction(ActionModel):
    action: Literal["submit_bg_job"]
    model: str
    rotation_index: int = Field(default=0, ge=0)
    job_payload: dict[str, Any]


class CheckStatusAction(ActionModel):
    action: Literal["check_status"]
    job_id: str = Field(min_length=1)


class LogErrorAction(ActionModel):
    action: Literal["logError"]
    prompt: str = ""
    model: str = ""
    error: str = ""


ActionRequest = Annotated[
    Union[
        AuthAction,
        TranslateAction,
        GenerateAction,
        EditAction,
        SubmitJobAction,
        CheckStatusAction,
        LogErrorAction,
    ],
    Field(discriminator="action"),
]

action_adapter: TypeAdapter[Any] = TypeAdapter(ActionRequest)
