"""Help center endpoints."""

from fastapi import APIRouter, Depends, Query, status

from lms.core import help_center
from lms.db.profiles_repository import ProfileRecord
from lms.web.dependencies import get_optional_user, require_instructor
from lms.web.schemas import (
    ArticleCreate,
    ArticleResponse,
    ArticleUpdate,
    CategoryCreate,
    CategoryResponse,
    FeedbackRequest,
)

router = APIRouter(prefix="/api/help", tags=["help"])


@router.get("/categories", response_model=list[CategoryResponse])
async def list_categories(section: str | None = None) -> list[CategoryResponse]:
    return [CategoryResponse.model_validate(c) for c in help_center.list_categories(section)]


@router.post("/categories", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(body: CategoryCreate, user: ProfileRecord = Depends(require_instructor)) -> CategoryResponse:
    return CategoryResponse.model_validate(help_center.create_category(user, **body.model_dump()))


@router.delete("/categories/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(category_id: str, user: ProfileRecord = Depends(require_instructor)) -> None:
    help_center.delete_category(user, category_id)


@router.get("/articles", response_model=list[ArticleResponse])
async def list_articles(
    section: str | None = None,
    category_id: str | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    search: str | None = None,
    user: ProfileRecord | None = Depends(get_optional_user),
) -> list[ArticleResponse]:
    """Articles; anonymous readers and students only see published ones."""
    articles = help_center.list_articles(
        user,
        section=section,
        category_id=category_id,
        status=status_filter,
        search=search,
    )
    return [ArticleResponse.model_validate(a) for a in articles]


@router.post("/articles", response_model=ArticleResponse, status_code=status.HTTP_201_CREATED)
async def create_article(body: ArticleCreate, user: ProfileRecord = Depends(require_instructor)) -> ArticleResponse:
    return ArticleResponse.model_validate(help_center.create_article(user, **body.model_dump()))


@router.get("/articles/{id_or_slug}", response_model=ArticleResponse)
async def view_article(
    id_or_slug: str,
    user: ProfileRecord | None = Depends(get_optional_user),
) -> ArticleResponse:
    return ArticleResponse.model_validate(help_center.view_article(user, id_or_slug))


@router.patch("/articles/{article_id}", response_model=ArticleResponse)
async def update_article(
    article_id: str,
    body: ArticleUpdate,
    user: ProfileRecord = Depends(require_instructor),
) -> ArticleResponse:
    changes = body.model_dump(exclude_unset=True)
    tags = changes.pop("tags", None)
    return ArticleResponse.model_validate(help_center.update_article(user, article_id, changes, tags=tags))


@router.delete("/articles/{article_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_article(article_id: str, user: ProfileRecord = Depends(require_instructor)) -> None:
    help_center.delete_article(user, article_id)


@router.post("/articles/{article_id}/feedback", response_model=ArticleResponse)
async def submit_feedback(
    article_id: str,
    body: FeedbackRequest,
    user: ProfileRecord | None = Depends(get_optional_user),
) -> ArticleResponse:
    """Helpful / not helpful vote; anonymous votes are accepted."""
    article = help_center.submit_feedback(user, article_id, body.is_helpful, body.feedback_text)
    return ArticleResponse.model_validate(article)
