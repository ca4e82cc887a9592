# expateats/schemas/__init__.py

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from expateats.models import PostSection

# =======================
# СХЕМЫ ДЛЯ ПОЛЬЗОВАТЕЛЕЙ
# =======================

class UserBase(BaseModel):
    """
    Базовая схема пользователя
    """
    email: EmailStr
    username: str = Field(min_length=3, max_length=50)


class UserCreate(UserBase):
    """
    Схема для создания пользователя (регистрация)
    """
    password: str = Field(min_length=8, max_length=128)
    name: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    bio: Optional[str] = None


class UserLogin(BaseModel):
    """
    Схема для логина. В username можно передать и e-mail
    """
    username: Optional[str] = None
    password: Optional[str] = None
    remember_me: bool = False


class UserResponse(BaseModel):
    """
    Схема ответа с инфо о пользователе. Пароля здесь нет и быть не может
    """
    id: int
    username: Optional[str] = None
    email: str
    name: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    bio: Optional[str] = None
    role: str
    email_verified: bool = False
    auth_provider: str = "local"
    profile_picture: Optional[str] = None
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AuthResponse(BaseModel):
    message: str
    user: UserResponse


class CurrentUserResponse(BaseModel):
    user: UserResponse


class AvailabilityResponse(BaseModel):
    available: bool


class CsrfTokenResponse(BaseModel):
    csrf_token: str


class GoogleStatusResponse(BaseModel):
    is_linked: bool
    auth_provider: str
    google_email: Optional[str] = None
    has_password: bool


class MessageResponse(BaseModel):
    message: str
    success: bool = True


# ===============
# СХЕМЫ ДЛЯ МЕСТ
# ===============

class Coordinates(BaseModel):
    latitude: str
    longitude: str


class PlaceBase(BaseModel):
    """Данные места, которые присылает пользователь"""
    name: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    address: str = Field(min_length=1, max_length=300)
    city: str = Field(min_length=1, max_length=100)
    region: Optional[str] = None
    country: str = "Portugal"
    category: str = Field(min_length=1, max_length=100)
    tags: List[str] = []
    unique_id: Optional[str] = None
    latitude: Optional[str] = None
    longitude: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    instagram: Optional[str] = None
    website: Optional[str] = None
    image_url: Optional[str] = None
    submitted_by: Optional[str] = None

    gluten_free: bool = False
    dairy_free: bool = False
    nut_free: bool = False
    vegan: bool = False
    organic: bool = False
    local_farms: bool = False
    fresh_vegetables: bool = False
    farm_raised_meat: bool = False
    no_processed: bool = False
    kid_friendly: bool = False
    bulk_buying: bool = False
    zero_waste: bool = False


class PlaceCreate(PlaceBase):
    """Создание места. Статус всегда pending, из запроса не берётся"""
    pass


class PlaceResponse(PlaceBase):
    id: int
    tags: Optional[List[str]] = None
    user_id: Optional[int] = None
    average_rating: Optional[int] = None
    soft_rating: Optional[int] = None
    curator_notes: Optional[str] = None
    status: str
    admin_notes: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PlaceApprove(BaseModel):
    """Одобрение места админом"""
    admin_notes: Optional[str] = None
    soft_rating: Optional[int] = Field(default=None, ge=1, le=5)
    curator_notes: Optional[str] = None
    skip_geocode: bool = False
    coordinates: Optional[Coordinates] = None


class PlaceReject(BaseModel):
    admin_notes: Optional[str] = None


class PlaceNotesUpdate(BaseModel):
    soft_rating: Optional[int] = Field(default=None, ge=1, le=5)
    curator_notes: Optional[str] = None


class PlaceLocationUpdate(BaseModel):
    address: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None


class ApprovePlaceResponse(BaseModel):
    success: bool = True
    message: str
    coordinates: Optional[Coordinates] = None


class BatchGeocodeItem(BaseModel):
    place_id: int
    place_name: str
    success: bool
    coordinates: Optional[Coordinates] = None
    error: Optional[str] = None


class BatchGeocodeSummary(BaseModel):
    total: int
    successful: int
    failed: int


class BatchGeocodeResponse(BaseModel):
    success: bool = True
    message: str
    results: List[BatchGeocodeItem]
    summary: BatchGeocodeSummary


# ==================
# ОТЗЫВЫ И ЗАКЛАДКИ
# ==================

class ReviewCreate(BaseModel):
    place_id: int
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=2000)


class ReviewResponse(BaseModel):
    id: int
    place_id: int
    user_id: int
    rating: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SavedStoreAction(BaseModel):
    store_id: Optional[int] = None
    action: Optional[str] = None


# ==================
# ГОРОДА И КАТЕГОРИИ
# ==================

class CityCreate(BaseModel):
    name: Optional[str] = None
    country: Optional[str] = None
    region: Optional[str] = None


class CityResponse(BaseModel):
    id: int
    name: str
    slug: str
    country: str
    region: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class CategoryResponse(BaseModel):
    id: int
    name: str
    icon: str
    description: str


# ====================
# СХЕМЫ ДЛЯ СОБЫТИЙ
# ====================

class EventCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    date: datetime
    time: str = Field(min_length=1, max_length=50)
    location: str = Field(min_length=1, max_length=300)
    venue_name: Optional[str] = None
    city: str = Field(min_length=1, max_length=100)
    country: str = "Portugal"
    organizer_name: Optional[str] = None
    organizer_role: Optional[str] = None
    organizer_email: Optional[EmailStr] = None
    category: Optional[str] = None
    image_url: Optional[str] = None
    website: Optional[str] = None
    event_cost: Optional[str] = None
    event_language: Optional[str] = None
    language_other: Optional[str] = None
    featured_interest: bool = False
    max_attendees: Optional[int] = Field(default=None, ge=1)
    submitted_by: str = Field(min_length=1, max_length=200)
    submitter_email: EmailStr


class EventUpdate(BaseModel):
    """Правка события админом: только переданные поля"""
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    date: Optional[datetime] = None
    time: Optional[str] = None
    location: Optional[str] = None
    venue_name: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    organizer_name: Optional[str] = None
    organizer_role: Optional[str] = None
    organizer_email: Optional[EmailStr] = None
    category: Optional[str] = None
    image_url: Optional[str] = None
    website: Optional[str] = None
    event_cost: Optional[str] = None
    event_language: Optional[str] = None
    language_other: Optional[str] = None
    featured_interest: Optional[bool] = None
    max_attendees: Optional[int] = Field(default=None, ge=1)


class EventResponse(EventCreate):
    id: int
    organizer_email: Optional[str] = None
    submitter_email: str
    current_attendees: Optional[int] = 0
    user_id: Optional[int] = None
    status: str
    admin_notes: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[int] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class EventModeration(BaseModel):
    admin_notes: Optional[str] = None


class EventSubmitResponse(BaseModel):
    message: str
    event_id: int


class EventUpdateResponse(BaseModel):
    message: str
    event: EventResponse


# ====================
# СХЕМЫ ДЛЯ ПУБЛИКАЦИЙ
# ====================

class PostCreate(BaseModel):
    """Создание поста"""
    title: str = Field(min_length=1, max_length=200)
    body: str = Field(min_length=1, max_length=5000)
    section: PostSection


class PostUpdate(PostCreate):
    """Обновление поста: все поля заново, как при создании"""
    pass


class PostResponse(BaseModel):
    """Пост с автором, счётчиками и лайком текущего пользователя"""
    id: int
    title: str
    body: str
    user_id: int
    username: Optional[str] = None
    section: str
    status: str
    created_at: datetime
    updated_at: datetime
    likes_count: int = 0
    comments_count: int = 0
    is_liked_by_user: bool = False


class Pagination(BaseModel):
    limit: int
    offset: int
    total: int
    has_more: bool


class PostListResponse(BaseModel):
    posts: List[PostResponse]
    pagination: Pagination


# ======================
# СХЕМЫ ДЛЯ КОММЕНТАРИЕВ
# ======================

class CommentCreate(BaseModel):
    """Создание комментария"""
    body: str = Field(min_length=1, max_length=1000)


class CommentUpdate(CommentCreate):
    """Обновление комментария"""
    pass


class CommentResponse(BaseModel):
    id: int
    post_id: int
    user_id: int
    username: Optional[str] = None
    body: str
    status: str
    created_at: datetime
    updated_at: datetime


class PostWithComments(BaseModel):
    """Пост со всеми его активными комментариями"""
    post: PostResponse
    comments: List[CommentResponse]


class LikeToggleResponse(BaseModel):
    is_liked: bool
    likes_count: int
    message: str


class LikeStatusResponse(BaseModel):
    post_id: int
    likes_count: int
    is_liked_by_user: bool

