# src/medpost/schemas/post.py
"""Post-related Pydantic schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class PostSave(BaseModel):
    """Schema for creating a new post."""

    title: str = Field(..., min_length=1, max_length=300, description="Post title")
    content: str = Field("", description="Post body")
    preview: str | None = Field(None, description="Short teaser shown in listings")
    preview_image_url: str | None = None
    important_image_url: str | None = None
    video_url: str | None = None
    author_id: int | None = Field(
        None,
        description="Author to attribute the post to; defaults to the caller's own author profile",
    )
    directions: list[int] = Field(default_factory=list, description="Direction IDs")
    tags: list[int] = Field(default_factory=list, description="Tag IDs")
    type_id: int | None = Field(None, description="Post type ID")
    origin_id: int | None = Field(None, description="Origin ID")
    status: int | None = Field(None, description="Status ordinal to apply after creation")


class PostUpdate(BaseModel):
    """Schema for updating a post; only the fields sent are changed."""

    id: int = Field(..., description="ID of the post to update")
    title: str | None = Field(None, min_length=1, max_length=300)
    content: str | None = None
    preview: str | None = None
    preview_image_url: str | None = None
    important_image_url: str | None = None
    video_url: str | None = None
    directions: list[int] | None = None
    tags: list[int] | None = None
    type_id: int | None = None
    origin_id: int | None = None
    status: int | None = Field(None, description="Status ordinal to move the post to")


class StatusUpdate(BaseModel):
    status: int = Field(..., description="Status ordinal")


class PublishedAtUpdate(BaseModel):
    published_at: datetime


class AuthorAssign(BaseModel):
    author_id: int


class ViewsUpdate(BaseModel):
    views: int = Field(0, ge=0, description="Number of views to display on top of real views")


class ImportantOrder(BaseModel):
    """New featured ranking; position in the list is the display order."""

    posts: list[int] | None = Field(None, description="Post IDs in display order")


class DirectionResponse(BaseModel):
    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


class TagResponse(BaseModel):
    id: int
    tag: str

    model_config = ConfigDict(from_attributes=True)


class OriginResponse(BaseModel):
    id: int
    slug: str
    name: str

    model_config = ConfigDict(from_attributes=True)


class PostTypeResponse(BaseModel):
    id: int
    slug: str
    name: str

    model_config = ConfigDict(from_attributes=True)


class AuthorSummary(BaseModel):
    id: int
    profile_id: int
    display_name: str
    published_posts: int


class PostResponse(BaseModel):
    """Schema for post information returned by the API."""

    id: int
    title: str
    content: str
    preview: str | None
    preview_image_url: str | None
    important_image_url: str | None
    video_url: str | None
    status: int
    status_name: str
    author: AuthorSummary | None
    directions: list[DirectionResponse]
    tags: list[TagResponse]
    type: PostTypeResponse | None
    origin: OriginResponse | None
    important: bool
    importance_order: int | None
    published_at: datetime | None
    views: int
    fake_views: int
    created_at: datetime
    modified_at: datetime


class PostDateResponse(BaseModel):
    id: int
    published_at: datetime | None


class PostPage(BaseModel):
    """One page of posts."""

    items: list[PostResponse]
    total: int
    page: int
    size: int
    total_pages: int


class MainPageResponse(BaseModel):
    """Latest published posts for each main-page section, keyed by section slug."""

    sections: dict[str, PostPage]
