from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


# --- Envelope ---

_STATE_BY_STATUS: dict[int, str] = {200: "success", 404: "notfound", 500: "failed"}


class RestResponse(BaseModel):
    """
    Uniform result of every comment operation.

    ``status`` doubles as the HTTP status code and always agrees with
    ``state`` (200/success, 404/notfound, 500/failed).  Build instances
    through ``success``, ``not_found`` or ``failed``.
    """

    status: Literal[200, 404, 500]
    state: Literal["success", "notfound", "failed"]
    message: str
    body: Any = None
    err: dict | None = None

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _status_matches_state(self) -> "RestResponse":
        if _STATE_BY_STATUS[self.status] != self.state:
            raise ValueError(f"status {self.status} does not match state {self.state!r}")
        return self

    @classmethod
    def success(cls, message: str, body: Any = None) -> "RestResponse":
        return cls(status=200, state="success", message=message, body=body)

    @classmethod
    def not_found(cls, message: str, err: dict | None = None) -> "RestResponse":
        return cls(status=404, state="notfound", message=message, err=err)

    @classmethod
    def failed(cls, message: str, err: dict | None = None) -> "RestResponse":
        return cls(status=500, state="failed", message=message, err=err)


# --- Comment ---

class CommentPayload(BaseModel):
    """A payload that has already passed ``validate``; ids are coerced to int."""

    user_id: int = Field(alias="userId")
    post_id: int = Field(alias="postId")
    parent_comment_id: int | None = Field(None, alias="parentCommentId")
    comment: str
    status: int | None = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# --- Metrics ---

class MetricsResponse(BaseModel):
    total_posts: int
    total_comments: int
    avg_comments_per_post: float
    cache_info: dict = {}
