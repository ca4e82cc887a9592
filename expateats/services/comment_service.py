# expateats/services/comment_service.py

"""
Сервисный слой для комментариев форума.

Комментарии удаляются только мягко (status=deleted).
"""

from typing import Any, List, Optional

from sqlalchemy.orm import Session

from expateats.models import Comment, ContentStatus, Post, User
from expateats.schemas import CommentCreate, CommentUpdate

ACTIVE = ContentStatus.ACTIVE.value


def _comment_to_dict(comment: Comment, username: Optional[str]) -> dict[str, Any]:
    return {
        "id": comment.id,
        "post_id": comment.post_id,
        "user_id": comment.user_id,
        "username": username,
        "body": comment.body,
        "status": comment.status,
        "created_at": comment.created_at,
        "updated_at": comment.updated_at,
    }


async def create_comment_for_post(
    db: Session,
    post: Post,
    author: User,
    comment_in: CommentCreate,
) -> dict[str, Any]:
    """
    Создать комментарий к (активному) посту от имени пользователя.
    """
    db_comment = Comment(
        body=comment_in.body,
        user_id=author.id,
        post_id=post.id,
        status=ACTIVE,
    )
    db.add(db_comment)
    db.commit()
    db.refresh(db_comment)
    return _comment_to_dict(db_comment, author.username)


async def list_comments_for_post(
    db: Session,
    post_id: int,
) -> List[dict[str, Any]]:
    """
    Активные комментарии поста, старые сверху.
    """
    rows = (
        db.query(Comment, User.username)
        .join(User, Comment.user_id == User.id)
        .filter(Comment.post_id == post_id, Comment.status == ACTIVE)
        .order_by(Comment.created_at.asc(), Comment.id.asc())
        .all()
    )
    return [_comment_to_dict(comment, username) for comment, username in rows]


async def get_active_comment(db: Session, comment_id: int) -> Optional[Comment]:
    return (
        db.query(Comment)
        .filter(Comment.id == comment_id, Comment.status == ACTIVE)
        .first()
    )


async def update_comment_for_user(
    db: Session,
    comment_id: int,
    comment_update: CommentUpdate,
    current_user: User,
) -> Optional[Comment] | bool:
    """
    Обновить комментарий:
    - None  -> комментарий не найден или удалён;
    - False -> пользователь не владелец;
    - Comment -> успешно обновлён.
    """
    db_comment = await get_active_comment(db, comment_id)
    if not db_comment:
        return None

    if db_comment.user_id != current_user.id:
        return False

    db_comment.body = comment_update.body
    db.commit()
    db.refresh(db_comment)
    return db_comment


async def delete_comment_for_user(
    db: Session,
    comment_id: int,
    current_user: User,
    is_admin: bool = False,
) -> Optional[bool]:
    """
    Удалить комментарий (мягко):
    - None  -> комментарий не найден или уже удалён;
    - False -> не владелец и не админ;
    - True  -> помечен deleted.
    """
    db_comment = await get_active_comment(db, comment_id)
    if not db_comment:
        return None

    if db_comment.user_id != current_user.id and not is_admin:
        return False

    db_comment.status = ContentStatus.DELETED.value
    db.commit()
    return True
