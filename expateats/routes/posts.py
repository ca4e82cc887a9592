# expateats/routes/posts.py

"""
API endpoints для постов сообщества и лайков.

Чтение открыто всем, изменения только для авторизованных (и с CSRF-токеном).
Редактировать может автор, удалять - автор или админ.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from expateats.dependencies import current_session, get_current_user
from expateats.models import PostSection, User
from expateats.schemas import (
    LikeStatusResponse,
    LikeToggleResponse,
    MessageResponse,
    PostCreate,
    PostListResponse,
    PostResponse,
    PostUpdate,
    PostWithComments,
)
from expateats.services import post_services
from expateats.services.comment_service import list_comments_for_post
from expateats.services.csrf_service import verify_csrf
from expateats.utils.database import get_db
from expateats.utils.exceptions import NotFound, PermissionDeniedError
from expateats.utils.session import SessionContext

router = APIRouter(prefix="/api/community/posts", tags=["posts"])


# ==========================
# ПОЛУЧИТЬ СПИСОК ПУБЛИКАЦИЙ
# ==========================

@router.get("", response_model=PostListResponse)
async def list_posts(
    limit: int = Query(default=20, ge=1, le=50),
    offset: int = Query(default=0, ge=0),
    section: Optional[PostSection] = None,
    session: SessionContext = Depends(current_session),
    db: Session = Depends(get_db),
):
    """
    Лента активных постов, новые сверху.

    Для вошедшего пользователя у каждого поста есть is_liked_by_user.
    """
    return await post_services.list_posts(
        db,
        limit=limit,
        offset=offset,
        section=section.value if section else None,
        current_user_id=session.user_id,
    )


# ==========================================
# ПОЛУЧИТЬ ПУБЛИКАЦИЮ СО ВСЕМИ КОММЕНТАРИЯМИ
# ==========================================

@router.get("/{post_id}", response_model=PostWithComments)
async def get_post(
    post_id: int,
    session: SessionContext = Depends(current_session),
    db: Session = Depends(get_db),
):
    post = await post_services.get_post_view(db, post_id, session.user_id)
    if not post:
        raise NotFound("Post not found")

    comments = await list_comments_for_post(db, post_id)
    return {"post": post, "comments": comments}


# =========================
# СОЗДАНИЕ НОВОЙ ПУБЛИКАЦИИ
# =========================

@router.post(
    "",
    response_model=PostResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(verify_csrf)],
)
async def create_post(
    post: PostCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return await post_services.create_post_for_user(db, current_user, post)


# =====================================
# ОБНОВЛЕНИЕ(РЕДАКТИРОВАНИЕ) ПУБЛИКАЦИИ
# =====================================

@router.put(
    "/{post_id}",
    response_model=MessageResponse,
    dependencies=[Depends(verify_csrf)],
)
async def update_post(
    post_id: int,
    post_update: PostUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = await post_services.update_post_for_user(db, post_id, post_update, current_user)

    if result is None:
        raise NotFound("Post not found")
    if result is False:
        raise PermissionDeniedError("Not authorized to edit this post")

    return {"message": "Post updated successfully"}


# ==================
# УДАЛИТЬ ПУБЛИКАЦИЮ
# ==================

@router.delete(
    "/{post_id}",
    response_model=MessageResponse,
    dependencies=[Depends(verify_csrf)],
)
async def delete_post(
    post_id: int,
    session: SessionContext = Depends(current_session),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Мягкое удаление поста вместе с комментариями, лайки удаляются.
    """
    result = await post_services.delete_post_for_user(
        db,
        post_id,
        current_user,
        is_admin=session.is_admin,
    )

    if result is None:
        raise NotFound("Post not found")
    if result is False:
        raise PermissionDeniedError("Not authorized to delete this post")

    return {"message": "Post and all associated comments deleted successfully"}


# =====
# ЛАЙКИ
# =====

@router.post(
    "/{post_id}/like",
    response_model=LikeToggleResponse,
    dependencies=[Depends(verify_csrf)],
)
async def toggle_like(
    post_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not await post_services.get_active_post(db, post_id):
        raise NotFound("Post not found")

    return await post_services.toggle_like(db, post_id, current_user.id)


@router.get("/{post_id}/likes", response_model=LikeStatusResponse)
async def like_status(
    post_id: int,
    session: SessionContext = Depends(current_session),
    db: Session = Depends(get_db),
):
    if not await post_services.get_active_post(db, post_id):
        raise NotFound("Post not found")

    return await post_services.get_like_status(db, post_id, session.user_id)
