from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.cache import ExistenceCache
from app.database import get_db
from app.services.comment_service import CommentService
from app.services.comment_store import SqlCommentStore


def get_cache(request: Request) -> ExistenceCache:
    """
    Return the process-wide existence cache built during startup.

    The cache lives on ``app.state`` rather than in a module global so
    tests can swap in a fresh instance (or one with a fake clock) per
    test.
    """
    return request.app.state.cache


def get_comment_service(
    db: AsyncSession = Depends(get_db),
    cache: ExistenceCache = Depends(get_cache),
) -> CommentService:
    """Build a CommentService bound to this request's session."""
    return CommentService(SqlCommentStore(db), cache)
