"""Issue-facing schemas validated at the HTTP boundary.

Provider fields are kept verbatim (``extra="allow"``); only the identity,
the webhook action and ``sort_position`` are checked.
"""

import json
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from tracksort.exceptions import FormatError


class Issue(BaseModel):
    """A record fetched from or sent to the issue tracker."""

    model_config = ConfigDict(extra="allow")

    id: int | str = Field(..., description="Stable identity in the source collection")

    @field_validator("id", mode="before")
    @classmethod
    def _reject_bool_and_blank(cls, v: Any) -> Any:
        if isinstance(v, bool):
            raise ValueError("Issue id must be a string or integer")
        if isinstance(v, str) and not v.strip():
            raise ValueError("Issue id must not be blank")
        return v

    @property
    def identity(self) -> str:
        return str(self.id)


class NewIssue(BaseModel):
    """Body of a create request; forwarded to the tracker as-is."""

    model_config = ConfigDict(extra="allow")

    sort_position: float | None = Field(default=None, allow_inf_nan=False)


class PositionUpdate(BaseModel):
    """Body of a reposition request."""

    model_config = ConfigDict(extra="allow")

    sort_position: float = Field(..., allow_inf_nan=False)


class WebhookNotification(BaseModel):
    """GitHub ``issues`` event: ``{"action": ..., "issue": {...}}``."""

    model_config = ConfigDict(extra="allow")

    action: str = Field(..., min_length=1)
    issue: Issue


def parse_body(model: type[BaseModel], body: bytes | str) -> tuple[BaseModel, dict[str, Any]]:
    """Validate a raw JSON body against ``model``.

    Returns the model instance and the decoded JSON object, so callers can
    echo or forward the body without losing provider fields.

    Raises:
        FormatError: If the body is not a JSON object or fails validation.
    """
    try:
        raw = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as exc:
        raise FormatError(f"Body is not valid JSON: {exc}") from exc

    if not isinstance(raw, dict):
        raise FormatError(f"Expected a JSON object, got {type(raw).__name__}")

    try:
        return model.model_validate(raw), raw
    except ValidationError as exc:
        raise FormatError(
            f"Invalid {model.__name__}: {exc.errors(include_url=False)}"
        ) from exc


@dataclass(frozen=True)
class IssueCollection:
    """An ``org/repo`` pair naming one issue collection."""

    org: str
    repo: str

    @property
    def issues_path(self) -> str:
        return f"/repos/{self.org}/{self.repo}/issues"

    def __str__(self) -> str:
        return f"{self.org}/{self.repo}"
