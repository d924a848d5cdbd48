# src/medpost/api/v1/endpoints/posts.py
"""Post-related endpoints for the medpost API."""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from medpost.api.v1.dependencies import CurrentPrincipalDep, PostServiceDep, pagination
from medpost.models import PostStatus
from medpost.repositories.pagination import SORT_DESC, PageRequest
from medpost.schemas.common import ApiResponseMessage, ViewCountResponse
from medpost.schemas.post import (
    AuthorAssign,
    ImportantOrder,
    MainPageResponse,
    PostDateResponse,
    PostPage,
    PostResponse,
    PostSave,
    PostTypeResponse,
    PostUpdate,
    PublishedAtUpdate,
    StatusUpdate,
    ViewsUpdate,
)
from medpost.services.filter_dispatch import PostFilter
from medpost.services.post_service import to_post_page, to_post_response

router = APIRouter(prefix="/posts", tags=["posts"])

LATEST_SORT = (("created_at", SORT_DESC), ("id", SORT_DESC))

DefaultPageDep = Annotated[PageRequest, Depends(pagination())]
LatestPageDep = Annotated[PageRequest, Depends(pagination(LATEST_SORT))]
IdList = Annotated[list[int] | None, Query()]


def _listing_filter(
    directions: IdList = None,
    types: IdList = None,
    origins: IdList = None,
    statuses: IdList = None,
    title: str = "",
    author: str = "",
    start_date: date | None = None,
    end_date: date | None = None,
) -> PostFilter:
    return PostFilter.build(
        directions=directions,
        types=types,
        origins=origins,
        statuses=[PostStatus.from_ordinal(value) for value in statuses or ()],
        title=title,
        author_name=author,
        start_date=start_date,
        end_date=end_date,
    )


ListingFilterDep = Annotated[PostFilter, Depends(_listing_filter)]


@router.post("", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def save_post(
    data: PostSave,
    principal: CurrentPrincipalDep,
    service: PostServiceDep,
) -> PostResponse:
    """Create a post; it starts in DRAFT unless a status is given."""
    return to_post_response(service.save(principal, data))


@router.put("", response_model=ApiResponseMessage)
async def update_post(
    data: PostUpdate,
    principal: CurrentPrincipalDep,
    service: PostServiceDep,
) -> ApiResponseMessage:
    service.update(principal, data)
    return ApiResponseMessage(success=True, message=f"post {data.id} updated successfully")


@router.get("/latest", response_model=PostPage)
async def find_latest_published(service: PostServiceDep, page: LatestPageDep) -> PostPage:
    return to_post_page(service.find_latest_published(page))


@router.get("/important", response_model=PostPage)
async def find_important(service: PostServiceDep, page: DefaultPageDep) -> PostPage:
    """Published important posts in ranking order."""
    return to_post_page(service.find_important(page))


@router.put("/important", response_model=ApiResponseMessage)
async def set_important_order(
    data: ImportantOrder,
    principal: CurrentPrincipalDep,
    service: PostServiceDep,
) -> ApiResponseMessage:
    """Replace the featured ranking with the posts given, in order."""
    success = service.set_important_order(principal, data.posts)
    return ApiResponseMessage(success=success, message="Posts updated successfully")


@router.get("/latest-by-direction", response_model=PostPage)
async def find_latest_by_direction(
    service: PostServiceDep,
    page: Annotated[PageRequest, Depends(pagination(LATEST_SORT, default_size=6))],
    direction: int,
    type: IdList = None,  # noqa: A002
    tag: IdList = None,
) -> PostPage:
    return to_post_page(service.find_latest_by_direction(direction, type, tag, page))


@router.get("/latest-by-expert", response_model=PostPage)
async def find_latest_by_expert(
    service: PostServiceDep,
    page: DefaultPageDep,
    expert: int,
    type: IdList = None,  # noqa: A002
    direction: IdList = None,
) -> PostPage:
    return to_post_page(service.find_latest_by_expert(expert, type, direction, page))


@router.get("/latest-by-expert-and-status", response_model=PostPage)
async def find_latest_by_expert_and_status(
    service: PostServiceDep,
    page: DefaultPageDep,
    expert: int,
    status: int,
    types: IdList = None,
) -> PostPage:
    return to_post_page(service.find_latest_by_expert_and_status(expert, types, status, page))


@router.get("/post-types", response_model=list[PostTypeResponse])
async def find_all_post_types(service: PostServiceDep) -> list[PostTypeResponse]:
    return [PostTypeResponse.model_validate(post_type) for post_type in service.list_post_types()]


@router.get("/all-posts", response_model=PostPage)
async def find_all_posts(
    service: PostServiceDep,
    page: DefaultPageDep,
    post_filter: ListingFilterDep,
) -> PostPage:
    """Posts of any status filtered by directions, types, origins, title, author and dates."""
    return to_post_page(service.find_all(post_filter, page))


@router.get("/all-posts/user/{user_id}", response_model=PostPage)
async def find_all_posts_for_user(
    user_id: int,
    service: PostServiceDep,
    page: DefaultPageDep,
    post_filter: ListingFilterDep,
) -> PostPage:
    """Like ``/all-posts`` but restricted to the author profile of one user."""
    return to_post_page(service.find_all_by_user(user_id, post_filter, page))


@router.get("/main-page", response_model=MainPageResponse)
async def find_main_page(
    service: PostServiceDep,
    page: Annotated[PageRequest, Depends(pagination(LATEST_SORT, default_size=16))],
) -> MainPageResponse:
    sections = service.find_main_page(page)
    return MainPageResponse(sections={slug: to_post_page(found) for slug, found in sections.items()})


@router.get("/main-page/mobile", response_model=MainPageResponse)
async def find_main_page_mobile(
    service: PostServiceDep,
    page: Annotated[PageRequest, Depends(pagination(LATEST_SORT, default_size=16))],
) -> MainPageResponse:
    """Main-page sections for the mobile client; same sections and paging as the web page."""
    return await find_main_page(service, page)


@router.get("/by-author-and-directions", response_model=PostPage)
async def find_by_author_and_directions(
    service: PostServiceDep,
    page: Annotated[PageRequest, Depends(pagination(default_size=12))],
    author_id: int,
    directions: Annotated[list[int], Query()],
) -> PostPage:
    """Published posts of one author within any of ``directions``."""
    return to_post_page(service.find_latest_by_expert(author_id, None, directions, page))


@router.get("/by-important-image", response_model=PostPage)
async def find_by_important_image(
    principal: CurrentPrincipalDep,
    service: PostServiceDep,
    page: DefaultPageDep,
    directions: IdList = None,
    types: IdList = None,
    origins: IdList = None,
) -> PostPage:
    """Published posts that are not featured, those with an important image first."""
    return to_post_page(service.find_by_important_image(principal, directions, types, origins, page))


@router.get("/view-count", response_model=ViewCountResponse)
async def get_view_count(url: str, service: PostServiceDep) -> ViewCountResponse:
    """Real views reported by analytics for a post URL."""
    return ViewCountResponse(url=url, views=await service.get_real_views(url))


@router.get("/fake-view-count", response_model=ViewCountResponse)
async def get_displayed_view_count(url: str, service: PostServiceDep) -> ViewCountResponse:
    """Fake views plus real views for a post URL."""
    return ViewCountResponse(url=url, views=await service.get_displayed_views(url))


@router.get("/{post_id}", response_model=PostResponse)
async def get_post(post_id: int, service: PostServiceDep) -> PostResponse:
    return to_post_response(service.find_post_by_id(post_id))


@router.get("/{post_id}/date", response_model=PostDateResponse)
async def get_post_date(post_id: int, service: PostServiceDep) -> PostDateResponse:
    post = service.find_post_by_id(post_id)
    return PostDateResponse(id=post.id, published_at=post.published_at)


@router.delete("/{post_id}", response_model=ApiResponseMessage)
async def delete_post(
    post_id: int,
    principal: CurrentPrincipalDep,
    service: PostServiceDep,
) -> ApiResponseMessage:
    """Archive a post; ``success`` is false when it was archived already."""
    result = service.delete(principal, post_id)
    return ApiResponseMessage(success=result.success, message=f"post {post_id} deleted successfully")


@router.patch("/{post_id}", response_model=PostResponse)
async def set_published_at(
    post_id: int,
    data: PublishedAtUpdate,
    principal: CurrentPrincipalDep,
    service: PostServiceDep,
) -> PostResponse:
    return to_post_response(service.set_published_at(principal, post_id, data.published_at))


@router.patch("/{post_id}/status", response_model=PostResponse)
async def set_post_status(
    post_id: int,
    data: StatusUpdate,
    principal: CurrentPrincipalDep,
    service: PostServiceDep,
) -> PostResponse:
    return to_post_response(service.set_status(principal, post_id, data.status))


@router.patch("/{post_id}/author", response_model=PostResponse)
async def set_post_author(
    post_id: int,
    data: AuthorAssign,
    principal: CurrentPrincipalDep,
    service: PostServiceDep,
) -> PostResponse:
    return to_post_response(service.set_author(principal, post_id, data.author_id))


@router.post("/{post_id}/views", response_model=PostResponse)
async def set_post_views(
    post_id: int,
    data: ViewsUpdate,
    principal: CurrentPrincipalDep,
    service: PostServiceDep,
) -> PostResponse:
    """Set the fake view count displayed on top of real views."""
    return to_post_response(service.set_views(principal, post_id, data.views))
