# backend/services/orders.py
import logging
from decimal import Decimal
from sqlalchemy import update
from sqlalchemy.orm import Session, joinedload, selectinload

from database import commit_or_rollback
from models.book import Book
from models.order import Order, OrderItem, OrderStatus
from utils.errors import ConflictError, NotFoundError, ValidationError
from utils.money import to_money

logger = logging.getLogger(__name__)

# Allowed order status changes; a terminal status only accepts itself
ORDER_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PENDING, OrderStatus.PAID, OrderStatus.CANCELLED},
    OrderStatus.PAID: {OrderStatus.PAID},
    OrderStatus.CANCELLED: {OrderStatus.CANCELLED},
}


def parse_order_status(value) -> OrderStatus:
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(str(value).upper())
    except ValueError:
        raise ValidationError("invalid order status")


# Orders are always returned with user, items and each item's book resolved
def _order_query(db: Session):
    return db.query(Order).options(
        joinedload(Order.user),
        selectinload(Order.items).joinedload(OrderItem.book).joinedload(Book.category),
    )


def get_order(db: Session, order_id) -> Order:
    order = _order_query(db).filter(Order.id == order_id).first()
    if not order:
        raise NotFoundError("order not found")
    return order


def list_orders(db: Session, user_id=None):
    q = _order_query(db)
    if user_id is not None:
        q = q.filter(Order.user_id == user_id)
    return q.order_by(Order.created_at.desc()).all()


def create_order(db: Session, user, items) -> Order:
    """Create a PENDING order from line items.

    Each item carries ``book_id``, ``quantity`` and an optional ``price``.
    A caller-supplied price is kept as the snapshot; without one the book's
    current catalog price is used. The total is the sum of price * quantity.
    """
    if not items:
        raise ValidationError("order must contain at least one item")

    book_ids = {item.book_id for item in items}
    books = {b.id: b for b in db.query(Book).filter(Book.id.in_(book_ids)).all()}

    total = Decimal("0.00")
    order_items = []
    for item in items:
        book = books.get(item.book_id)
        if book is None:
            raise NotFoundError(f"book {item.book_id} not found")
        if item.quantity is None or item.quantity < 1:
            raise ValidationError("quantity must be at least 1")

        price = to_money(item.price if item.price is not None else book.price)
        if price < 0:
            raise ValidationError("price must not be negative")

        total += price * item.quantity
        order_items.append(OrderItem(book_id=book.id, quantity=item.quantity, price=price))

    order = Order(
        user_id=user.id,
        status=OrderStatus.PENDING,
        total_price=to_money(total),
        items=order_items,
    )
    db.add(order)
    commit_or_rollback(db, "creating order")
    logger.info("Order %s created for user %s, total %s", order.id, user.id, order.total_price)
    return get_order(db, order.id)


def advance_order_status(db: Session, order: Order, target: OrderStatus):
    """Move an order to ``target`` inside the caller's unit of work.

    The write is conditioned on the status we read, so a concurrent change
    makes it fail instead of being overwritten. Nothing is committed here.
    """
    current = OrderStatus(order.status)
    if target not in ORDER_TRANSITIONS[current]:
        raise ValidationError(f"cannot change order status from {current.value} to {target.value}")
    if target == current:
        return

    result = db.execute(
        update(Order)
        .where(Order.id == order.id, Order.status == current)
        .values(status=target)
    )
    if result.rowcount != 1:
        raise ConflictError("order was modified concurrently")


def update_order_status(db: Session, order_id, new_status) -> Order:
    target = parse_order_status(new_status)
    order = get_order(db, order_id)
    try:
        advance_order_status(db, order, target)
    except Exception:
        db.rollback()
        raise
    commit_or_rollback(db, "updating order status")
    return get_order(db, order_id)


def delete_order(db: Session, order_id):
    order = get_order(db, order_id)
    db.delete(order)
    commit_or_rollback(db, "deleting order")
