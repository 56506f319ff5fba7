"""
Sanitisation and validation of inbound comment payloads.

Both functions work on the raw request body (a plain dict) and mutate it
in place, so the caller keeps passing the same object down the pipeline.
Neither raises: ``validate`` reports every problem it finds as a list of
human-readable messages.
"""
import html
import logging
import re
from typing import Any

from app.config import settings

logger = logging.getLogger(__name__)

_ID_RE = re.compile(r"^[0-9]+$")

# Entities produced by html.escape(..., quote=True); only these are reversed.
_ESCAPED_RE = re.compile(r"&(amp|lt|gt|quot|#x27);")
_UNESCAPED = {"amp": "&", "lt": "<", "gt": ">", "quot": "\"", "#x27": "'"}

# Upper bound of the Integer id columns.
MAX_ID = 2**31 - 1

USER_ID_ERROR = "Invalid User ID! User ID must be a number!"
POST_ID_ERROR = "Invalid Post ID! Post ID must be a number!"
PARENT_ID_ERROR = "Invalid Parent Comment ID! Parent Comment ID must be a number or null!"


def comment_error(max_length: int) -> str:
    return f"Invalid Comment! Comment must be a string no more than {max_length} characters!"


def _has_alpha(value: str) -> bool:
    return any(ch.isalpha() for ch in value)


def is_numeric_id(value: Any) -> bool:
    """
    True when *value* is an integer in ``0..MAX_ID``, given as an int or
    as a string made only of ASCII digits.  ``"1a"``, ``""``, booleans and
    ids too large for the id columns are rejected.
    """
    if isinstance(value, bool):
        return False
    if isinstance(value, str):
        # More digits than MAX_ID has cannot be in range; skip the int parse.
        if not _ID_RE.fullmatch(value) or len(value.lstrip("0")) > len(str(MAX_ID)):
            return False
        value = int(value)
    if isinstance(value, int):
        return 0 <= value <= MAX_ID
    return False


def _unescape_own(value: str) -> str:
    return _ESCAPED_RE.sub(lambda m: _UNESCAPED[m.group(1)], value)


def sanitize(payload: dict) -> dict:
    """
    HTML-escape, in place, every string field that contains a letter.

    Pure numeric fields are left untouched.  The five entities
    ``html.escape`` emits are reversed before escaping, so running
    ``sanitize`` twice yields the same result as running it once; any
    other ``&name`` text is escaped as written.
    """
    logger.info("Sanitizing comment payload")
    for key, value in list(payload.items()):
        if isinstance(value, str) and _has_alpha(value):
            payload[key] = html.escape(_unescape_own(value), quote=True)
    return payload


def validate(payload: dict) -> list[str]:
    """
    Return every validation failure for *payload*; an empty list means valid.

    A ``parentCommentId`` of ``"null"`` is normalised to ``None`` in place.
    """
    errors: list[str] = []
    max_length = settings.COMMENT_MAX_LENGTH

    logger.debug("Validating comment userId")
    if not is_numeric_id(payload.get("userId")):
        errors.append(USER_ID_ERROR)

    logger.debug("Validating comment postId")
    if not is_numeric_id(payload.get("postId")):
        errors.append(POST_ID_ERROR)

    if "parentCommentId" in payload:
        logger.debug("Validating comment parentCommentId")
        if payload["parentCommentId"] == "null":
            payload["parentCommentId"] = None
        parent = payload["parentCommentId"]
        if parent is not None and not is_numeric_id(parent):
            errors.append(PARENT_ID_ERROR)

    logger.debug("Validating comment text")
    text = payload.get("comment")
    if not isinstance(text, str) or not _has_alpha(text) or len(text) > max_length:
        errors.append(comment_error(max_length))

    if errors:
        logger.warning("Comment payload rejected: %s", errors)
    return errors
