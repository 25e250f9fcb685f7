from decimal import Decimal
import uuid

import pytest

from models.order import OrderStatus
from schemas.order import OrderItemCreate
from services import orders as order_service
from utils.errors import NotFoundError, ValidationError


def test_create_order_totals_catalog_prices(order):
    assert order.status == OrderStatus.PENDING
    assert order.total_price == Decimal("25.00")
    assert sorted(item.price for item in order.items) == [Decimal("5.00"), Decimal("10.00")]


def test_create_order_keeps_supplied_price(db, customer, books):
    first, _ = books
    order = order_service.create_order(db, customer, [
        OrderItemCreate(book_id=first.id, quantity=3, price=Decimal("7.50")),
    ])
    assert order.total_price == Decimal("22.50")
    assert order.items[0].price == Decimal("7.50")


def test_create_order_rejects_empty_items(db, customer):
    with pytest.raises(ValidationError):
        order_service.create_order(db, customer, [])


def test_create_order_unknown_book(db, customer, books):
    with pytest.raises(NotFoundError):
        order_service.create_order(db, customer, [
            OrderItemCreate(book_id=uuid.uuid4(), quantity=1),
        ])


def test_list_orders_filters_by_user(db, order, other_customer, books):
    first, _ = books
    order_service.create_order(db, other_customer, [OrderItemCreate(book_id=first.id, quantity=1)])

    mine = order_service.list_orders(db, user_id=order.user_id)
    assert [o.id for o in mine] == [order.id]
    assert len(order_service.list_orders(db)) == 2


def test_cancel_then_pay_is_rejected(db, order):
    cancelled = order_service.update_order_status(db, order.id, "cancelled")
    assert cancelled.status == OrderStatus.CANCELLED

    with pytest.raises(ValidationError):
        order_service.update_order_status(db, order.id, OrderStatus.PAID)
    assert order_service.get_order(db, order.id).status == OrderStatus.CANCELLED


def test_unknown_order_status(db, order):
    with pytest.raises(ValidationError):
        order_service.update_order_status(db, order.id, "SHIPPED")


def test_delete_order(db, order):
    order_service.delete_order(db, order.id)
    with pytest.raises(NotFoundError):
        order_service.get_order(db, order.id)
