# expateats/services/post_services.py

"""
Сервисный слой для постов сообщества и лайков.

Знает про модели, но не про HTTP-статусы/исключения.
Счётчики лайков и комментариев считаются сгруппированными подзапросами
и присоединяются к постам через LEFT JOIN.
"""

from typing import Any, Optional

from loguru import logger
from sqlalchemy import desc, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from expateats.models import Comment, ContentStatus, Post, PostLike, User
from expateats.schemas import PostCreate, PostUpdate

ACTIVE = ContentStatus.ACTIVE.value
DELETED = ContentStatus.DELETED.value


def _posts_query(db: Session, current_user_id: Optional[int]):
    """Посты + username автора + likes_count/comments_count (+ лайк текущего пользователя)"""
    likes_count = (
        db.query(PostLike.post_id.label("post_id"), func.count(PostLike.id).label("count"))
        .group_by(PostLike.post_id)
        .subquery()
    )
    comments_count = (
        db.query(Comment.post_id.label("post_id"), func.count(Comment.id).label("count"))
        .filter(Comment.status == ACTIVE)
        .group_by(Comment.post_id)
        .subquery()
    )

    columns = [
        Post,
        User.username,
        func.coalesce(likes_count.c.count, 0).label("likes_count"),
        func.coalesce(comments_count.c.count, 0).label("comments_count"),
    ]

    user_likes = None
    if current_user_id is not None:
        user_likes = (
            db.query(PostLike.post_id.label("post_id"))
            .filter(PostLike.user_id == current_user_id)
            .subquery()
        )
        columns.append(user_likes.c.post_id.label("liked_post_id"))

    query = (
        db.query(*columns)
        .join(User, Post.user_id == User.id)
        .outerjoin(likes_count, likes_count.c.post_id == Post.id)
        .outerjoin(comments_count, comments_count.c.post_id == Post.id)
    )
    if user_likes is not None:
        query = query.outerjoin(user_likes, user_likes.c.post_id == Post.id)

    return query


def _row_to_dict(row) -> dict[str, Any]:
    post = row[0]
    liked_post_id = getattr(row, "liked_post_id", None)
    return {
        "id": post.id,
        "title": post.title,
        "body": post.body,
        "user_id": post.user_id,
        "username": row.username,
        "section": post.section,
        "status": post.status,
        "created_at": post.created_at,
        "updated_at": post.updated_at,
        "likes_count": int(row.likes_count or 0),
        "comments_count": int(row.comments_count or 0),
        "is_liked_by_user": liked_post_id is not None,
    }


async def list_posts(
    db: Session,
    limit: int = 20,
    offset: int = 0,
    section: Optional[str] = None,
    current_user_id: Optional[int] = None,
) -> dict[str, Any]:
    """
    Лента активных постов, новые сверху, с блоком пагинации.
    """
    conditions = [Post.status == ACTIVE]
    if section:
        conditions.append(Post.section == section)

    rows = (
        _posts_query(db, current_user_id)
        .filter(*conditions)
        .order_by(desc(Post.created_at), desc(Post.id))
        .offset(offset)
        .limit(limit)
        .all()
    )
    total = db.query(func.count(Post.id)).filter(*conditions).scalar() or 0

    return {
        "posts": [_row_to_dict(row) for row in rows],
        "pagination": {
            "limit": limit,
            "offset": offset,
            "total": total,
            "has_more": offset + limit < total,
        },
    }


async def get_active_post(db: Session, post_id: int) -> Optional[Post]:
    return db.query(Post).filter(Post.id == post_id, Post.status == ACTIVE).first()


async def get_post_view(
    db: Session,
    post_id: int,
    current_user_id: Optional[int] = None,
) -> Optional[dict[str, Any]]:
    """Один активный пост со счётчиками, None если не найден или удалён"""
    row = (
        _posts_query(db, current_user_id)
        .filter(Post.id == post_id, Post.status == ACTIVE)
        .first()
    )
    if row is None:
        return None
    return _row_to_dict(row)


async def create_post_for_user(
    db: Session,
    author: User,
    post_in: PostCreate,
) -> dict[str, Any]:
    """
    Создать пост от имени пользователя. Ответ - как в ленте, со счётчиками 0.
    """
    db_post = Post(
        title=post_in.title,
        body=post_in.body,
        section=post_in.section.value,
        user_id=author.id,
        status=ACTIVE,
    )

    db.add(db_post)
    db.commit()
    db.refresh(db_post)

    return await get_post_view(db, db_post.id, author.id)


async def update_post_for_user(
    db: Session,
    post_id: int,
    post_update: PostUpdate,
    current_user: User,
) -> Optional[Post] | bool:
    """
    Обновить пост:
    - None  -> пост не найден или удалён;
    - False -> пользователь не владелец;
    - Post  -> успешное обновление.
    """
    db_post = await get_active_post(db, post_id)
    if not db_post:
        return None

    if db_post.user_id != current_user.id:
        return False

    db_post.title = post_update.title
    db_post.body = post_update.body
    db_post.section = post_update.section.value

    db.commit()
    db.refresh(db_post)
    return db_post


def _mark_post_deleted(db: Session, post_id: int) -> None:
    db.query(Post).filter(Post.id == post_id).update(
        {Post.status: DELETED},
        synchronize_session=False,
    )


def delete_post_cascade(db: Session, post_id: int) -> None:
    """
    Одна транзакция: лайки удаляются физически, комментарии и сам пост
    помечаются deleted. Любая ошибка откатывает все три шага.
    """
    try:
        db.query(PostLike).filter(PostLike.post_id == post_id).delete(synchronize_session=False)
        db.query(Comment).filter(Comment.post_id == post_id).update(
            {Comment.status: DELETED},
            synchronize_session=False,
        )
        _mark_post_deleted(db, post_id)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Post {} deletion rolled back", post_id)
        raise


async def delete_post_for_user(
    db: Session,
    post_id: int,
    current_user: User,
    is_admin: bool = False,
) -> Optional[bool]:
    """
    Удалить пост (мягко):
    - None  -> пост не найден или уже удалён;
    - False -> не владелец и не админ;
    - True  -> удалён вместе с лайками и комментариями.
    """
    db_post = await get_active_post(db, post_id)
    if not db_post:
        return None

    if db_post.user_id != current_user.id and not is_admin:
        return False

    delete_post_cascade(db, post_id)
    return True


# =====
# Лайки
# =====

def _likes_count(db: Session, post_id: int) -> int:
    return db.query(func.count(PostLike.id)).filter(PostLike.post_id == post_id).scalar() or 0


def _user_like(db: Session, post_id: int, user_id: int) -> Optional[PostLike]:
    return (
        db.query(PostLike)
        .filter(PostLike.post_id == post_id, PostLike.user_id == user_id)
        .first()
    )


async def toggle_like(db: Session, post_id: int, user_id: int) -> dict[str, Any]:
    """Поставить лайк, если его нет, иначе снять"""
    existing = _user_like(db, post_id, user_id)
    if existing:
        db.delete(existing)
        db.commit()
        is_liked = False
    else:
        db.add(PostLike(post_id=post_id, user_id=user_id))
        try:
            db.commit()
        except IntegrityError:
            # Второй одновременный лайк той же пары: лайк уже стоит
            db.rollback()
        is_liked = True

    return {
        "is_liked": is_liked,
        "likes_count": _likes_count(db, post_id),
        "message": "Post liked" if is_liked else "Post unliked",
    }


async def get_like_status(
    db: Session,
    post_id: int,
    user_id: Optional[int] = None,
) -> dict[str, Any]:
    is_liked = False
    if user_id is not None:
        is_liked = _user_like(db, post_id, user_id) is not None

    return {
        "post_id": post_id,
        "likes_count": _likes_count(db, post_id),
        "is_liked_by_user": is_liked,
    }
