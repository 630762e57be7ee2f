from pydantic import BaseModel, EmailStr, Field, field_validator

from blogapi.models import ArticleStatus

SLUG_PATTERN = r"^[a-z0-9]+(-[a-z0-9]+)*$"
COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"
URL_PATTERN = r"^https?://\S+$"


def _strip(value):
    return value.strip() if isinstance(value, str) else value


# --- Auth / User ---

class UserRegister(BaseModel):
    email: EmailStr
    username: str
    password: str
    confirm_password: str

    @field_validator("email", "username", mode="before")
    @classmethod
    def strip_whitespace(cls, value):
        return _strip(value)


class UserLogin(BaseModel):
    email: EmailStr
    password: str

    @field_validator("email", mode="before")
    @classmethod
    def strip_whitespace(cls, value):
        return _strip(value)


class ProfileUpdate(BaseModel):
    username: str | None = None
    bio: str | None = Field(None, max_length=500)
    avatar: str | None = Field(None, max_length=500, pattern=URL_PATTERN)

    @field_validator("username", mode="before")
    @classmethod
    def strip_whitespace(cls, value):
        return _strip(value)


class PasswordChange(BaseModel):
    old_password: str
    new_password: str


# --- Taxonomy ---

class CategoryCreate(BaseModel):
    name: str = Field(min_length=2, max_length=50)
    slug: str = Field(min_length=2, max_length=100, pattern=SLUG_PATTERN)
    description: str = Field("", max_length=500)
    color: str = Field("#3B82F6", pattern=COLOR_PATTERN)

    @field_validator("name", mode="before")
    @classmethod
    def strip_whitespace(cls, value):
        return _strip(value)


class CategoryUpdate(BaseModel):
    name: str | None = Field(None, min_length=2, max_length=50)
    slug: str | None = Field(None, min_length=2, max_length=100, pattern=SLUG_PATTERN)
    description: str | None = Field(None, max_length=500)
    color: str | None = Field(None, pattern=COLOR_PATTERN)

    @field_validator("name", mode="before")
    @classmethod
    def strip_whitespace(cls, value):
        return _strip(value)


class TagCreate(BaseModel):
    name: str = Field(min_length=2, max_length=50)
    slug: str = Field(min_length=2, max_length=100, pattern=SLUG_PATTERN)
    color: str = Field("#10B981", pattern=COLOR_PATTERN)

    @field_validator("name", mode="before")
    @classmethod
    def strip_whitespace(cls, value):
        return _strip(value)


class TagUpdate(BaseModel):
    name: str | None = Field(None, min_length=2, max_length=50)
    slug: str | None = Field(None, min_length=2, max_length=100, pattern=SLUG_PATTERN)
    color: str | None = Field(None, pattern=COLOR_PATTERN)

    @field_validator("name", mode="before")
    @classmethod
    def strip_whitespace(cls, value):
        return _strip(value)


# --- Article ---

class ArticleCreate(BaseModel):
    title: str = Field(min_length=3, max_length=200)
    slug: str = Field(min_length=3, max_length=100, pattern=SLUG_PATTERN)
    excerpt: str = Field("", max_length=500)
    content: str = Field(min_length=10)
    cover_image: str | None = Field(None, max_length=500, pattern=URL_PATTERN)
    status: ArticleStatus = ArticleStatus.DRAFT
    is_top: bool = False
    category_id: int
    tag_ids: list[int] = []

    @field_validator("title", mode="before")
    @classmethod
    def strip_whitespace(cls, value):
        return _strip(value)

    @field_validator("tag_ids")
    @classmethod
    def dedupe_tags(cls, value: list[int]) -> list[int]:
        return list(dict.fromkeys(value))


class ArticleUpdate(BaseModel):
    title: str | None = Field(None, min_length=3, max_length=200)
    slug: str | None = Field(None, min_length=3, max_length=100, pattern=SLUG_PATTERN)
    excerpt: str | None = Field(None, max_length=500)
    content: str | None = Field(None, min_length=10)
    cover_image: str | None = Field(None, max_length=500, pattern=URL_PATTERN)
    status: ArticleStatus | None = None
    is_top: bool | None = None
    category_id: int | None = None
    tag_ids: list[int] | None = None

    @field_validator("title", mode="before")
    @classmethod
    def strip_whitespace(cls, value):
        return _strip(value)

    @field_validator("tag_ids")
    @classmethod
    def dedupe_tags(cls, value: list[int] | None) -> list[int] | None:
        return None if value is None else list(dict.fromkeys(value))


# --- Comment ---

class CommentCreate(BaseModel):
    content: str = Field(min_length=1, max_length=5000)
    article_id: int
    parent_id: int | None = None

    @field_validator("content", mode="before")
    @classmethod
    def strip_whitespace(cls, value):
        return _strip(value)


class CommentUpdate(BaseModel):
    content: str = Field(min_length=1, max_length=5000)

    @field_validator("content", mode="before")
    @classmethod
    def strip_whitespace(cls, value):
        return _strip(value)


# --- Likes ---

class LikeCheckRequest(BaseModel):
    article_ids: list[int] = Field(max_length=100)
