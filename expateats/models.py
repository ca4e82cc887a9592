# expateats/models.py

import enum
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class ModerationStatus(str, enum.Enum):
    """Статусы модерации мест и событий"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ContentStatus(str, enum.Enum):
    """Статусы постов и комментариев. DELETED - терминальный"""
    ACTIVE = "active"
    DELETED = "deleted"


class PostSection(str, enum.Enum):
    GENERAL = "general"
    WHERE_TO_FIND = "where-to-find"
    PRODUCT_SWAPS = "product-swaps"


class User(Base):
    """
    Модель пользователя.

    username/password пустые у пользователей, пришедших только через Google.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), unique=True, nullable=True, index=True)
    password = Column(String(255), nullable=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(200))
    city = Column(String(100))
    country = Column(String(100))
    bio = Column(Text)
    role = Column(String(20), nullable=False, default="user")
    email_verified = Column(Boolean, nullable=False, default=False)

    # Блокировка после неудачных попыток входа
    failed_login_attempts = Column(Integer, nullable=False, default=0)
    account_locked_until = Column(DateTime, nullable=True)
    last_login_at = Column(DateTime, nullable=True)

    # Google OAuth
    google_id = Column(String(255), unique=True, nullable=True, index=True)
    google_email = Column(String(255))
    profile_picture = Column(String(500))
    auth_provider = Column(String(20), nullable=False, default="local")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    posts = relationship("Post", back_populates="author")
    comments = relationship("Comment", back_populates="author")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class City(Base):
    __tablename__ = "cities"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    slug = Column(String(100), unique=True, nullable=False)
    country = Column(String(100), nullable=False)
    region = Column(String(100))
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class Place(Base):
    """
    Место из каталога: магазин, рынок, ресторан.

    Публично видны только места со статусом approved.
    """
    __tablename__ = "places"

    id = Column(Integer, primary_key=True, index=True)
    unique_id = Column(String(100))
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    address = Column(String(300), nullable=False)
    city = Column(String(100), nullable=False, index=True)
    region = Column(String(100))
    country = Column(String(100), nullable=False)
    category = Column(String(100), nullable=False)
    tags = Column(JSON, default=list)
    latitude = Column(String(20))
    longitude = Column(String(20))

    # Контакты
    phone = Column(String(50))
    email = Column(String(255))
    instagram = Column(String(255))
    website = Column(String(500))

    # Диетические фильтры
    gluten_free = Column(Boolean, default=False)
    dairy_free = Column(Boolean, default=False)
    nut_free = Column(Boolean, default=False)
    vegan = Column(Boolean, default=False)
    organic = Column(Boolean, default=False)
    local_farms = Column(Boolean, default=False)
    fresh_vegetables = Column(Boolean, default=False)
    farm_raised_meat = Column(Boolean, default=False)
    no_processed = Column(Boolean, default=False)
    kid_friendly = Column(Boolean, default=False)
    bulk_buying = Column(Boolean, default=False)
    zero_waste = Column(Boolean, default=False)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    image_url = Column(String(500))
    average_rating = Column(Integer)
    soft_rating = Column(Integer)
    curator_notes = Column(Text)

    # Модерация
    status = Column(String(20), nullable=False, default=ModerationStatus.PENDING.value, index=True)
    submitted_by = Column(String(255))
    admin_notes = Column(Text)
    reviewed_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)

    reviews = relationship("Review", back_populates="place")


class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    place_id = Column(Integer, ForeignKey("places.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    place = relationship("Place", back_populates="reviews")


class SavedStore(Base):
    """Закладка пользователя на место. Пара (user, place) уникальна"""
    __tablename__ = "saved_stores"
    __table_args__ = (UniqueConstraint("user_id", "place_id", name="uq_saved_store_user_place"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    place_id = Column(Integer, ForeignKey("places.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    place = relationship("Place")


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    date = Column(DateTime, nullable=False, index=True)
    time = Column(String(50), nullable=False)
    location = Column(String(300), nullable=False)
    venue_name = Column(String(200))
    city = Column(String(100), nullable=False, index=True)
    country = Column(String(100), nullable=False, default="Portugal")
    organizer_name = Column(String(200))
    organizer_role = Column(String(100))
    organizer_email = Column(String(255))
    category = Column(String(100))
    image_url = Column(String(500))
    website = Column(String(500))
    event_cost = Column(String(100))
    event_language = Column(String(100))
    language_other = Column(String(100))
    featured_interest = Column(Boolean, default=False)
    max_attendees = Column(Integer)
    current_attendees = Column(Integer, default=0)
    submitted_by = Column(String(200), nullable=False)
    submitter_email = Column(String(255), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Модерация
    status = Column(String(20), nullable=False, default=ModerationStatus.PENDING.value, index=True)
    admin_notes = Column(Text)
    reviewed_at = Column(DateTime)
    reviewed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class Post(Base):
    """
    Пост сообщества. Удаляется только мягко (status=deleted)
    """
    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    body = Column(Text, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    section = Column(String(50), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=ContentStatus.ACTIVE.value, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    author = relationship("User", back_populates="posts")
    comments = relationship("Comment", back_populates="post")
    likes = relationship("PostLike", back_populates="post")


class Comment(Base):
    """
    Модель комментария
    """
    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, index=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    body = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default=ContentStatus.ACTIVE.value)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    author = relationship("User", back_populates="comments")
    post = relationship("Post", back_populates="comments")


class PostLike(Base):
    """Лайк поста. Не больше одного на пару (user, post)"""
    __tablename__ = "post_likes"
    __table_args__ = (UniqueConstraint("user_id", "post_id", name="uq_post_like_user_post"),)

    id = Column(Integer, primary_key=True, index=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    post = relationship("Post", back_populates="likes")
