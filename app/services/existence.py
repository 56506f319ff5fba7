"""
Existence checks for posts and comments, fronted by the TTL cache.

Only positive answers are cached: a missing id is looked up in the store
every time it is asked about.
"""
import logging
from typing import Literal

from app.cache import ExistenceCache, entity_key
from app.services.comment_store import CommentStore
from app.services.validation import is_numeric_id

logger = logging.getLogger(__name__)

EntityKind = Literal["post", "comment"]


class ExistenceVerifier:
    def __init__(self, store: CommentStore, cache: ExistenceCache) -> None:
        self.store = store
        self.cache = cache

    async def exists(self, kind: EntityKind, entity_id) -> bool:
        """
        Return True when the *kind* entity with *entity_id* exists.

        Malformed ids and store failures fail closed (False) and are
        logged, never raised.
        """
        if not is_numeric_id(entity_id):
            logger.error("Refusing %s existence check for malformed id %r", kind, entity_id)
            return False

        key = entity_key(kind, int(entity_id))
        if await self.cache.has(key):
            logger.debug("Existence cache hit for %s", key)
            return True

        if kind == "post":
            lookup = self.store.find_post_by_id
        elif kind == "comment":
            lookup = self.store.find_comment_by_id
        else:
            raise ValueError(f"Unknown entity kind: {kind!r}")

        try:
            record = await lookup(int(entity_id))
        except Exception as exc:
            logger.error("Existence check for %s failed: %s", key, exc)
            return False

        if not record:
            logger.info("%s %s does not exist", kind.capitalize(), entity_id)
            return False
        if isinstance(record, list):
            record = record[0]

        await self.cache.set(key, record, ttl=self.cache.default_ttl)
        return True

    async def post_exists(self, post_id) -> bool:
        return await self.exists("post", post_id)

    async def comment_exists(self, comment_id) -> bool:
        return await self.exists("comment", comment_id)
