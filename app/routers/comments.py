from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from app.dependencies import get_comment_service
from app.schemas import RestResponse
from app.services.comment_service import CommentService

router = APIRouter(prefix="/api/v1/comment", tags=["comments"])


def _respond(envelope: RestResponse) -> JSONResponse:
    return JSONResponse(status_code=envelope.status, content=envelope.model_dump(mode="json"))

# Bodies are taken as raw JSON so a bad payload reaches the validator.

@router.post("", response_model=RestResponse)
async def register_comment(
    payload: Any = Body(None),
    service: CommentService = Depends(get_comment_service),
):
    return _respond(await service.register_comment(payload))

@router.put("/{comment_id}", response_model=RestResponse)
async def update_comment(
    comment_id: str,
    payload: Any = Body(None),
    service: CommentService = Depends(get_comment_service),
):
    return _respond(await service.update_comment(comment_id, payload))

@router.get("/post/{post_id}", response_model=RestResponse)
async def get_comments(post_id: str, service: CommentService = Depends(get_comment_service)):
    return _respond(await service.get_comments(post_id))

@router.delete("/{comment_id}", response_model=RestResponse)
async def delete_comment(comment_id: str, service: CommentService = Depends(get_comment_service)):
    return _respond(await service.delete_comment(comment_id))
