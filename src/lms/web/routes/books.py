"""Book store endpoints."""

import structlog
from fastapi import APIRouter, Depends, status

from lms.core import books
from lms.db.profiles_repository import ProfileRecord
from lms.web.dependencies import get_current_user, get_optional_user, require_feature, require_instructor
from lms.web.schemas import (
    BookCreate,
    BookListResponse,
    BookResponse,
    BookUpdate,
    PurchaseResponse,
    PurchaseWithBook,
    ShipmentResponse,
    ShipmentUpdate,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/books", tags=["books"], dependencies=[Depends(require_feature("books"))])


@router.get("", response_model=BookListResponse)
async def list_books() -> BookListResponse:
    """List published books."""
    items = [BookResponse.model_validate(b) for b in books.list_published_books()]
    logger.info("books_list", count=len(items))
    return BookListResponse(books=items, count=len(items))


@router.get("/mine", response_model=BookListResponse)
async def list_my_books(user: ProfileRecord = Depends(require_instructor)) -> BookListResponse:
    items = [BookResponse.model_validate(b) for b in books.list_author_books(user)]
    return BookListResponse(books=items, count=len(items))


@router.get("/purchases", response_model=list[PurchaseWithBook])
async def list_my_purchases(user: ProfileRecord = Depends(get_current_user)) -> list[PurchaseWithBook]:
    return [
        PurchaseWithBook(
            purchase=PurchaseResponse.model_validate(purchase),
            book=BookResponse.model_validate(book),
        )
        for purchase, book in books.list_my_purchases(user)
    ]


@router.post("", response_model=BookResponse, status_code=status.HTTP_201_CREATED)
async def create_book(body: BookCreate, user: ProfileRecord = Depends(require_instructor)) -> BookResponse:
    return BookResponse.model_validate(books.create_book(user, **body.model_dump()))


@router.get("/{book_id}", response_model=BookResponse)
async def get_book(book_id: str, user: ProfileRecord | None = Depends(get_optional_user)) -> BookResponse:
    return BookResponse.model_validate(books.get_visible_book(book_id, user))


@router.patch("/{book_id}", response_model=BookResponse)
async def update_book(
    book_id: str,
    body: BookUpdate,
    user: ProfileRecord = Depends(require_instructor),
) -> BookResponse:
    return BookResponse.model_validate(books.update_book(user, book_id, body.model_dump(exclude_unset=True)))


@router.delete("/{book_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_book(book_id: str, user: ProfileRecord = Depends(require_instructor)) -> None:
    books.delete_book(user, book_id)


@router.get("/{book_id}/shipments", response_model=list[ShipmentResponse])
async def list_shipments(book_id: str, user: ProfileRecord = Depends(require_instructor)) -> list[ShipmentResponse]:
    """Physical orders of a book with their buyers."""
    return [
        ShipmentResponse(
            purchase=PurchaseResponse.model_validate(s.purchase),
            student_name=s.student.full_name if s.student else None,
            student_email=s.student.email if s.student else None,
        )
        for s in books.list_shipments(user, book_id)
    ]


@router.patch("/{book_id}/shipments/{purchase_id}", response_model=PurchaseResponse)
async def update_shipment(
    book_id: str,
    purchase_id: str,
    body: ShipmentUpdate,
    user: ProfileRecord = Depends(require_instructor),
) -> PurchaseResponse:
    details = body.model_dump(exclude_unset=True, exclude={"delivery_status"})
    purchase = books.update_shipment(user, book_id, purchase_id, body.delivery_status, details)
    return PurchaseResponse.model_validate(purchase)
