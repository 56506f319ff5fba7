"""
Comment service: the request pipeline for comment operations.

Every public method runs the same shape of pipeline and always returns a
``RestResponse``; no exception escapes it:

    sanitize -> validate -> verify referenced ids -> store call
             -> cache upkeep -> envelope

Design notes
------------
- A failed existence check ends the pipeline with a 404 envelope; the
  store write is never attempted afterwards.
- Validation failures are reported as 500 "failed" envelopes carrying
  every collected message.
- Raw store errors are logged; they only reach the envelope when
  ``settings.EXPOSE_ERROR_DETAIL`` is on.
- Cache upkeep is narrow: deleting a comment drops its
  ``comment-<id>`` entry, but cached ``CL-<postId>`` lists are left to
  expire on their own, and create/update touch nothing.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

from app.cache import ExistenceCache, comment_list_key, entity_key
from app.config import settings
from app.errors import CommentError, DependencyError, NotFoundError, ValidationError
from app.models import COMMENT_ACTIVE
from app.schemas import CommentPayload, RestResponse
from app.services.comment_store import CommentStore
from app.services.existence import ExistenceVerifier
from app.services.validation import POST_ID_ERROR, is_numeric_id, sanitize, validate

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Something went wrong! Contact admin for information!"
INVALID_COMMENT_ID = "Invalid Comment ID! Comment ID must be a number!"


class ListOutcome(Enum):
    CACHE_HIT = "cache_hit"
    STORE_HIT = "store_hit"
    EMPTY = "empty"
    DEPENDENCY_ERROR = "dependency_error"


@dataclass
class CommentListLookup:
    outcome: ListOutcome
    comments: list[dict] | None = None
    error: BaseException | None = None


class CommentService:
    def __init__(
        self,
        store: CommentStore,
        cache: ExistenceCache,
        verifier: ExistenceVerifier | None = None,
    ) -> None:
        self.store = store
        self.cache = cache
        self.verifier = verifier or ExistenceVerifier(store, cache)

    # ------------------------------------------------------------------
    # Pipeline steps
    # ------------------------------------------------------------------

    def _prepare(self, payload: Any) -> dict:
        if not isinstance(payload, dict):
            raise ValidationError(["Comment payload must be a JSON object!"])
        sanitize(payload)
        errors = validate(payload)
        if errors:
            raise ValidationError(errors)
        return payload

    async def _require_references(self, payload: dict) -> None:
        post_id = payload["postId"]
        if not await self.verifier.post_exists(post_id):
            raise NotFoundError(f"Post {post_id} does not exist!")

        parent_id = payload.get("parentCommentId")
        if parent_id is not None and not await self.verifier.comment_exists(parent_id):
            raise NotFoundError(f"Parent comment {parent_id} does not exist!")

    async def _call_store(self, action: str, fn: Callable[..., Awaitable[Any]], *args) -> Any:
        try:
            result = await fn(*args)
        except Exception as exc:
            raise DependencyError(f"Store failed to {action}", cause=exc) from exc
        if result is None:
            raise DependencyError(f"Store returned nothing for {action}")
        return result

    def _error_response(self, exc: CommentError) -> RestResponse:
        if isinstance(exc, ValidationError):
            return RestResponse.failed(
                "Validation Error!",
                err={"message": exc.message, "messages": exc.messages},
            )
        if isinstance(exc, NotFoundError):
            logger.error(exc.message)
            return RestResponse.not_found(exc.message, err={"message": exc.message})

        cause = getattr(exc, "cause", None)
        logger.error("%s: %s", exc.message, cause if cause is not None else "no result")
        err: dict = {"message": GENERIC_FAILURE}
        if settings.EXPOSE_ERROR_DETAIL:
            err["detail"] = str(cause) if cause is not None else exc.message
        return RestResponse.failed("Internal Server Error!", err=err)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def register_comment(self, payload: Any) -> RestResponse:
        """Create a comment on an existing post, optionally as a reply."""
        try:
            payload = self._prepare(payload)
            payload["status"] = COMMENT_ACTIVE
            await self._require_references(payload)

            logger.info("Attempting to add comment")
            record = await self._call_store(
                "create comment", self.store.create_comment, CommentPayload.model_validate(payload)
            )
        except CommentError as exc:
            return self._error_response(exc)

        logger.info("Comment %s has been added to post %s", record.get("id"), record.get("postId"))
        return RestResponse.success("Comment has been added successfully!", body=record)

    async def update_comment(self, comment_id: Any, payload: Any) -> RestResponse:
        """
        Rewrite an existing comment.

        ``status`` is not client-mutable and is dropped from *payload*.
        The post, the parent (when given) and the comment itself must all
        exist before the store is asked to write.
        """
        try:
            payload = self._prepare(payload)
            payload.pop("status", None)
            await self._require_references(payload)
            if not await self.verifier.comment_exists(comment_id):
                raise NotFoundError(f"Comment {comment_id} does not exist!")

            logger.info("Attempting to update comment %s", comment_id)
            record = await self._call_store(
                "update comment",
                self.store.update_comment,
                int(comment_id),
                CommentPayload.model_validate(payload),
            )
        except CommentError as exc:
            return self._error_response(exc)

        logger.info("Comment %s has been updated", comment_id)
        return RestResponse.success("Comment has been updated successfully!", body=record)

    async def _lookup_comment_list(self, post_id: int) -> CommentListLookup:
        key = comment_list_key(post_id)
        cached = await self.cache.get(key)
        if cached is not None:
            return CommentListLookup(ListOutcome.CACHE_HIT, comments=cached)

        try:
            comments = await self.store.list_comments_by_post(post_id)
        except Exception as exc:
            return CommentListLookup(ListOutcome.DEPENDENCY_ERROR, error=exc)
        if comments is None:
            return CommentListLookup(ListOutcome.DEPENDENCY_ERROR)
        if len(comments) == 0:
            return CommentListLookup(ListOutcome.EMPTY, comments=[])

        await self.cache.set(key, comments, ttl=self.cache.default_ttl)
        return CommentListLookup(ListOutcome.STORE_HIT, comments=comments)

    async def get_comments(self, post_id: Any) -> RestResponse:
        """Return the active comments of a post, served from ``CL-<postId>`` when cached."""
        if not is_numeric_id(post_id):
            return self._error_response(ValidationError([POST_ID_ERROR]))

        logger.info("Attempting to retrieve comments for post %s", post_id)
        lookup = await self._lookup_comment_list(int(post_id))

        if lookup.outcome is ListOutcome.DEPENDENCY_ERROR:
            return self._error_response(
                DependencyError("Store failed to list comments", cause=lookup.error)
            )
        if lookup.outcome is ListOutcome.EMPTY:
            return self._error_response(NotFoundError("Cannot find any Comment records!"))

        logger.info(
            "Comments for post %s have been retrieved (%s)", post_id, lookup.outcome.value
        )
        return RestResponse.success("Comments have been retrieved!", body=lookup.comments)

    async def delete_comment(self, comment_id: Any) -> RestResponse:
        """Soft-delete a comment and forget its cached existence."""
        try:
            if not is_numeric_id(comment_id):
                raise ValidationError([INVALID_COMMENT_ID])

            logger.info("Attempting to delete comment %s", comment_id)
            await self._call_store("delete comment", self.store.delete_comment, int(comment_id))
        except CommentError as exc:
            return self._error_response(exc)

        await self.cache.delete(entity_key("comment", int(comment_id)))
        logger.info("Comment %s has been deleted", comment_id)
        return RestResponse.success("Comment has been deleted successfully!")
