"""
Comment store: SQL data access for posts and comments.

This is the only module that talks to the database.  ``CommentService``
depends on the ``CommentStore`` protocol rather than on this class, so
tests can hand it an in-memory fake.

Design notes
------------
- Records leave the store as plain JSON-safe dicts using the wire keys
  (``userId``, ``postId``, ``parentCommentId`` ...) so they can be cached
  and returned in an envelope unchanged.
- Deletion is soft: ``status`` flips to 0.  Lookups and listings only
  see active comments, so a deleted comment stops "existing".
- Methods flush but do not commit; the transaction boundary is owned by
  the ``get_db`` dependency.  A failed write rolls the session back
  before re-raising (whatever the error type) so the caller's commit does
  not trip over it.
"""
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import COMMENT_ACTIVE, COMMENT_DELETED, Comment, Post
from app.schemas import CommentPayload


class CommentStore(Protocol):
    async def find_post_by_id(self, post_id: int) -> dict | None: ...

    async def find_comment_by_id(self, comment_id: int) -> dict | None: ...

    async def create_comment(self, payload: CommentPayload) -> dict | None: ...

    async def update_comment(self, comment_id: int, payload: CommentPayload) -> dict | None: ...

    async def list_comments_by_post(self, post_id: int) -> list[dict] | None: ...

    async def delete_comment(self, comment_id: int) -> dict | None: ...


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _post_to_dict(post: Post) -> dict:
    return {
        "id": post.id,
        "userId": post.user_id,
        "title": post.title,
        "createdAt": post.created_at.isoformat() if post.created_at else None,
    }


def _comment_to_dict(comment: Comment) -> dict:
    """Serialise a Comment ORM instance to a plain dict."""
    return {
        "id": comment.id,
        "userId": comment.user_id,
        "postId": comment.post_id,
        "parentCommentId": comment.parent_comment_id,
        "comment": comment.comment,
        "status": comment.status,
        "createdAt": comment.created_at.isoformat() if comment.created_at else None,
        "updatedAt": comment.updated_at.isoformat() if comment.updated_at else None,
    }


# ---------------------------------------------------------------------------
# SQLAlchemy implementation
# ---------------------------------------------------------------------------

class SqlCommentStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _active_comment(self, comment_id: int) -> Comment | None:
        q = select(Comment).where(
            Comment.id == int(comment_id),
            Comment.status == COMMENT_ACTIVE,
        )
        result = await self.db.execute(q)
        return result.scalar_one_or_none()

    async def find_post_by_id(self, post_id: int) -> dict | None:
        result = await self.db.execute(select(Post).where(Post.id == int(post_id)))
        post = result.scalar_one_or_none()
        return _post_to_dict(post) if post is not None else None

    async def find_comment_by_id(self, comment_id: int) -> dict | None:
        comment = await self._active_comment(comment_id)
        return _comment_to_dict(comment) if comment is not None else None

    async def create_comment(self, payload: CommentPayload) -> dict | None:
        comment = Comment(
            user_id=payload.user_id,
            post_id=payload.post_id,
            parent_comment_id=payload.parent_comment_id,
            comment=payload.comment,
            status=payload.status if payload.status is not None else COMMENT_ACTIVE,
        )
        try:
            self.db.add(comment)
            await self.db.flush()
            # server_default columns (created_at) are only known after a reload
            await self.db.refresh(comment)
        except Exception:
            await self.db.rollback()
            raise
        return _comment_to_dict(comment)

    async def update_comment(self, comment_id: int, payload: CommentPayload) -> dict | None:
        """
        Overwrite the editable fields of an active comment.

        ``status`` is never copied from *payload*.  Returns None when no
        active comment has *comment_id*.
        """
        comment = await self._active_comment(comment_id)
        if comment is None:
            return None

        comment.user_id = payload.user_id
        comment.post_id = payload.post_id
        comment.parent_comment_id = payload.parent_comment_id
        comment.comment = payload.comment
        try:
            await self.db.flush()
            await self.db.refresh(comment)
        except Exception:
            await self.db.rollback()
            raise
        return _comment_to_dict(comment)

    async def list_comments_by_post(self, post_id: int) -> list[dict] | None:
        q = (
            select(Comment)
            .where(Comment.post_id == int(post_id), Comment.status == COMMENT_ACTIVE)
            .order_by(Comment.created_at, Comment.id)
        )
        result = await self.db.execute(q)
        return [_comment_to_dict(c) for c in result.scalars().all()]

    async def delete_comment(self, comment_id: int) -> dict | None:
        comment = await self._active_comment(comment_id)
        if comment is None:
            return None

        comment.status = COMMENT_DELETED
        try:
            await self.db.flush()
            await self.db.refresh(comment)
        except Exception:
            await self.db.rollback()
            raise
        return _comment_to_dict(comment)
