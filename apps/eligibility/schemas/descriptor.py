"""Eligibility request descriptor. Immutable; one per request."""

from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_CONTENT_TYPE = "post"
ANY_STATUS = "any"
VIEWABLE_STATUSES: tuple[str, ...] = ("publish", "private", "draft", "pending", "future")
PROTECTED_VALUE = "1"


class Workflow(str, Enum):
    """Which artifact a run generates. Selects the existence and protection meta keys."""

    QUIZ = "quiz"
    SUMMARY = "summary"

    @property
    def artifact_key(self) -> str:
        return f"{self.value}_data"

    @property
    def protection_key(self) -> str:
        return f"{self.value}_protected"


class QueryDescriptor(BaseModel):
    """Filters for one eligibility query. Equal field values => equal cache key and result set."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    content_type: str = Field(DEFAULT_CONTENT_TYPE, description="Content type; empty means 'post'")
    status: str = Field(ANY_STATUS, description="Single status or 'any' for every viewable status")
    category_id: int | None = Field(None, ge=0, description="Category term id; 0 means unset")
    author_id: int | None = Field(None, ge=0, description="Author id; 0 means unset")
    workflow: Workflow = Workflow.SUMMARY
    allow_recompute: bool = Field(False, description="Include items that already carry the artifact")
    allow_override_protected: bool = Field(False, description="Include items protected for this workflow")

    @field_validator("content_type", mode="before")
    @classmethod
    def _default_content_type(cls, v: Any) -> str:
        if v is None or not str(v).strip():
            return DEFAULT_CONTENT_TYPE
        return str(v).strip()

    @field_validator("status", mode="before")
    @classmethod
    def _default_status(cls, v: Any) -> str:
        if v is None or not str(v).strip():
            return ANY_STATUS
        return str(v).strip()

    @field_validator("category_id", "author_id")
    @classmethod
    def _zero_is_unset(cls, v: int | None) -> int | None:
        return v or None

    @property
    def statuses(self) -> tuple[str, ...]:
        """Expanded status list: the viewable set for 'any', else the single status."""
        if self.status == ANY_STATUS:
            return VIEWABLE_STATUSES
        return (self.status,)

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any], **overrides: Any) -> "QueryDescriptor":
        """Build from host settings defaults (default_content_type, default_status); overrides win."""
        fields: dict[str, Any] = {
            "content_type": settings.get("default_content_type") or DEFAULT_CONTENT_TYPE,
            "status": settings.get("default_status") or ANY_STATUS,
        }
        fields.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**fields)
