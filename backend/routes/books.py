# backend/routes/books.py
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from database import get_db, commit_or_rollback
from models.book import Book
from models.category import Category
from models.users import User, ROLE_ADMIN, ROLE_CUSTOMER
from schemas.book import BookCreate, BookOut, BookUpdate
from schemas.common import Envelope, MessageOut
from utils.audit import write_log, client_ip
from utils.errors import ConflictError, NotFoundError
from utils.money import to_money
from utils.tokenJWT import role_required

router = APIRouter(prefix="/books", tags=["Books"])


def _get_book(db: Session, book_id: UUID) -> Book:
    book = db.query(Book).options(joinedload(Book.category)).filter(Book.id == book_id).first()
    if not book:
        raise NotFoundError("book not found")
    return book


def _ensure_category(db: Session, category_id: UUID):
    if not db.query(Category.id).filter(Category.id == category_id).first():
        raise NotFoundError("category not found")


@router.post("", response_model=Envelope[BookOut], status_code=status.HTTP_201_CREATED)
def create_book(
    payload: BookCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN)),
):
    _ensure_category(db, payload.category_id)

    data = payload.model_dump()
    data["price"] = to_money(data["price"])
    book = Book(**data)
    db.add(book)
    commit_or_rollback(db, "creating book")

    write_log(db, user_id=current_user.id, action="BOOK_CREATE", resource="books",
              ip=client_ip(request), meta={"book_id": str(book.id), "title": payload.title})
    return {"data": _get_book(db, book.id)}


# List books, optionally filtered by category and a title/author search
@router.get("", response_model=Envelope[List[BookOut]])
def list_books(
    category_id: Optional[UUID] = Query(None),
    q: Optional[str] = Query(None, description="Search by title or author"),
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN, ROLE_CUSTOMER)),
):
    query = db.query(Book).options(joinedload(Book.category))
    if category_id:
        query = query.filter(Book.category_id == category_id)
    if q:
        like = f"%{q}%"
        query = query.filter(or_(Book.title.ilike(like), Book.author.ilike(like)))
    return {"data": query.order_by(Book.title.asc()).all()}


@router.get("/{book_id}", response_model=Envelope[BookOut])
def get_book(
    book_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN, ROLE_CUSTOMER)),
):
    return {"data": _get_book(db, book_id)}


@router.put("/{book_id}", response_model=Envelope[BookOut])
def update_book(
    book_id: UUID,
    payload: BookUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN)),
):
    book = _get_book(db, book_id)

    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "category_id" in changes:
        _ensure_category(db, changes["category_id"])
    if "price" in changes:
        changes["price"] = to_money(changes["price"])

    # Update only the fields provided in the payload
    for field, value in changes.items():
        setattr(book, field, value)
    commit_or_rollback(db, "updating book")

    write_log(db, user_id=current_user.id, action="BOOK_UPDATE", resource="books",
              ip=client_ip(request), meta={"book_id": str(book_id), "fields": sorted(changes)})
    return {"data": _get_book(db, book_id)}


@router.delete("/{book_id}", response_model=Envelope[MessageOut])
def delete_book(
    book_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN)),
):
    book = _get_book(db, book_id)
    db.delete(book)
    try:
        commit_or_rollback(db, "deleting book")
    except IntegrityError:
        raise ConflictError("book is referenced by existing orders")

    write_log(db, user_id=current_user.id, action="BOOK_DELETE", resource="books",
              ip=client_ip(request), meta={"book_id": str(book_id)})
    return {"data": {"message": "book deleted successfully"}}
