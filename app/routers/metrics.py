from fastapi import APIRouter, Depends
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from app.database import get_db
from app.dependencies import get_cache
from app.cache import ExistenceCache
from app.models import COMMENT_ACTIVE, Comment, Post
from app.schemas import MetricsResponse

router = APIRouter(prefix="/api/v1/metrics", tags=["metrics"])

@router.get("", response_model=MetricsResponse)
async def get_metrics(
    db: AsyncSession = Depends(get_db),
    cache: ExistenceCache = Depends(get_cache),
):

    total_posts = (await db.execute(select(func.count()).select_from(Post))).scalar_one()

    total_comments = (
        await db.execute(
            select(func.count()).select_from(Comment).where(Comment.status == COMMENT_ACTIVE)
        )
    ).scalar_one()

    avg_comments = total_comments / total_posts if total_posts > 0 else 0

    return MetricsResponse(
        total_posts=total_posts,
        total_comments=total_comments,
        avg_comments_per_post=round(avg_comments, 2),
        cache_info=cache.stats,
    )
