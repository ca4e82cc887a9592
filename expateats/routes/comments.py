# expateats/routes/comments.py

"""
API endpoints для комментариев.

Все endpoints требуют авторизации и CSRF-токена.
Обновление - только автор, удаление - автор или админ.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from expateats.dependencies import current_session, get_current_user
from expateats.models import User
from expateats.schemas import CommentCreate, CommentResponse, CommentUpdate, MessageResponse
from expateats.services.comment_service import (
    create_comment_for_post,
    delete_comment_for_user,
    update_comment_for_user,
)
from expateats.services.csrf_service import verify_csrf
from expateats.services.post_services import get_active_post
from expateats.utils.database import get_db
from expateats.utils.exceptions import NotFound, PermissionDeniedError
from expateats.utils.session import SessionContext

router = APIRouter(prefix="/api/community", tags=["comments"])


@router.post(
    "/posts/{post_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(verify_csrf)],
)
async def create_comment(
    post_id: int,
    comment: CommentCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Создаём комментарий к активному посту.
    """
    post = await get_active_post(db, post_id)
    if not post:
        raise NotFound("Post not found")

    return await create_comment_for_post(db=db, post=post, author=current_user, comment_in=comment)


@router.put(
    "/comments/{comment_id}",
    response_model=MessageResponse,
    dependencies=[Depends(verify_csrf)],
)
async def update_comment(
    comment_id: int,
    comment_update: CommentUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = await update_comment_for_user(
        db=db,
        comment_id=comment_id,
        comment_update=comment_update,
        current_user=current_user,
    )

    if result is None:
        raise NotFound("Comment not found")
    if result is False:
        raise PermissionDeniedError("Not authorized to edit this comment")

    return {"message": "Comment updated successfully"}


@router.delete(
    "/comments/{comment_id}",
    response_model=MessageResponse,
    dependencies=[Depends(verify_csrf)],
)
async def delete_comment(
    comment_id: int,
    session: SessionContext = Depends(current_session),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = await delete_comment_for_user(
        db=db,
        comment_id=comment_id,
        current_user=current_user,
        is_admin=session.is_admin,
    )

    if result is None:
        raise NotFound("Comment not found")
    if result is False:
        raise PermissionDeniedError("Not authorized to delete this comment")

    return {"message": "Comment deleted successfully"}
