from decimal import Decimal
import uuid

import pytest
from sqlalchemy import update

from database import SessionLocal
from models.order import Order, OrderStatus
from models.transaction import PaymentMethod, Transaction, TransactionStatus
from schemas.order import OrderItemCreate
from schemas.transaction import EsewaPaymentRequest
from services import orders as order_service
from services import transactions as transaction_service
from utils.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from utils.esewa_client import esewa_client


@pytest.fixture
def transaction(db, order, customer):
    return transaction_service.create_transaction(db, order.id, PaymentMethod.ESEWA, Decimal("25.00"), customer)


def _esewa_details(**overrides):
    data = {"product_code": "EPAYTEST", "product_name": "Book Order"}
    data.update(overrides)
    return EsewaPaymentRequest(**data)


def test_create_transaction_starts_pending(transaction, order):
    assert transaction.status == TransactionStatus.PENDING
    assert transaction.amount == Decimal("25.00")
    assert transaction.order_id == order.id
    assert transaction.payment_method == PaymentMethod.ESEWA


def test_payment_method_accepts_lowercase(db, order, customer):
    transaction = transaction_service.create_transaction(db, order.id, "cash", "25", customer)
    assert transaction.payment_method == PaymentMethod.CASH


def test_second_transaction_for_order_conflicts(db, transaction, order, customer):
    with pytest.raises(ConflictError):
        transaction_service.create_transaction(db, order.id, PaymentMethod.ESEWA, Decimal("25.00"), customer)


def test_amount_must_match_order_total(db, order, customer):
    with pytest.raises(ValidationError):
        transaction_service.create_transaction(db, order.id, PaymentMethod.ESEWA, Decimal("24.99"), customer)


def test_cannot_pay_for_someone_elses_order(db, order, other_customer):
    with pytest.raises(AuthorizationError):
        transaction_service.create_transaction(db, order.id, PaymentMethod.ESEWA, Decimal("25.00"), other_customer)


def test_unknown_order(db, customer):
    with pytest.raises(NotFoundError):
        transaction_service.create_transaction(db, uuid.uuid4(), PaymentMethod.ESEWA, Decimal("25.00"), customer)


def test_success_marks_order_paid(db, transaction, order):
    updated = transaction_service.update_transaction_status(db, transaction.id, "SUCCESS", external_ref="REF-1")
    assert updated.status == TransactionStatus.SUCCESS
    assert updated.external_ref == "REF-1"
    assert order_service.get_order(db, order.id).status == OrderStatus.PAID


def test_settled_transaction_cannot_change(db, transaction):
    transaction_service.update_transaction_status(db, transaction.id, TransactionStatus.SUCCESS)
    with pytest.raises(ValidationError):
        transaction_service.update_transaction_status(db, transaction.id, TransactionStatus.FAILED)

    # replaying the same status is accepted
    again = transaction_service.update_transaction_status(db, transaction.id, TransactionStatus.SUCCESS)
    assert again.status == TransactionStatus.SUCCESS


def test_invalid_transaction_status(db, transaction):
    with pytest.raises(ValidationError):
        transaction_service.update_transaction_status(db, transaction.id, "REFUNDED")


def test_success_on_cancelled_order_rolls_back(db, transaction, order):
    order_service.update_order_status(db, order.id, OrderStatus.CANCELLED)

    with pytest.raises(ValidationError):
        transaction_service.update_transaction_status(db, transaction.id, TransactionStatus.SUCCESS)

    assert transaction_service.get_transaction(db, transaction.id).status == TransactionStatus.PENDING
    assert order_service.get_order(db, order.id).status == OrderStatus.CANCELLED


def test_external_ref_is_unique(db, transaction, customer, books):
    first, _ = books
    other_order = order_service.create_order(db, customer, [OrderItemCreate(book_id=first.id, quantity=1)])
    other = transaction_service.create_transaction(db, other_order.id, "ESEWA", Decimal("10.00"), customer)

    transaction_service.update_transaction_status(db, transaction.id, "SUCCESS", external_ref="DUP")
    with pytest.raises(ConflictError):
        transaction_service.update_transaction_status(db, other.id, "SUCCESS", external_ref="DUP")
    assert transaction_service.get_transaction(db, other.id).status == TransactionStatus.PENDING


def test_initiate_builds_signed_payment_url(db, transaction, customer):
    initiated = transaction_service.initiate_esewa_payment(db, transaction.id, _esewa_details(), customer)
    assert initiated.payment_url.startswith(esewa_client.payment_url)
    assert f"transaction_uuid={transaction.id}" in initiated.payment_url
    assert "signature=" in initiated.payment_url
    assert initiated.product_code == "EPAYTEST"
    assert initiated.merchant_code == esewa_client.merchant_code


def test_initiate_requires_pending(db, transaction, customer):
    transaction_service.update_transaction_status(db, transaction.id, "SUCCESS")
    with pytest.raises(ValidationError, match="not in pending status"):
        transaction_service.initiate_esewa_payment(db, transaction.id, _esewa_details(), customer)

    untouched = transaction_service.get_transaction(db, transaction.id)
    assert untouched.payment_url is None
    assert untouched.product_code is None
    assert untouched.merchant_code is None


def test_admin_may_initiate_for_customer(db, transaction, admin):
    initiated = transaction_service.initiate_esewa_payment(db, transaction.id, _esewa_details(), admin)
    assert initiated.payment_url is not None
    assert initiated.user_id != admin.id


def test_initiate_checks_amount_and_owner(db, transaction, other_customer, customer):
    with pytest.raises(AuthorizationError):
        transaction_service.initiate_esewa_payment(db, transaction.id, _esewa_details(), other_customer)
    with pytest.raises(ValidationError):
        transaction_service.initiate_esewa_payment(
            db, transaction.id, _esewa_details(amount=Decimal("20.00")), customer
        )


@pytest.mark.parametrize("gateway_status", ["COMPLETE", "SUCCESS", "complete"])
def test_verify_success_settles_transaction_and_order(db, transaction, order, gateway_status):
    payload = {
        "transaction_code": str(transaction.id),
        "status": gateway_status,
        "total_amount": "25.00",
        "ref_id": "000AE01",
    }
    verified = transaction_service.verify_esewa_payment(db, payload)
    assert verified.status == TransactionStatus.SUCCESS
    assert verified.external_ref == "000AE01"
    assert verified.gateway_response == payload
    assert order_service.get_order(db, order.id).status == OrderStatus.PAID


@pytest.mark.parametrize("gateway_status", ["FAILED", "ERROR"])
def test_verify_failed_keeps_order_pending(db, transaction, order, gateway_status):
    verified = transaction_service.verify_esewa_payment(db, {
        "transaction_code": str(transaction.id),
        "status": gateway_status,
        "message": "insufficient balance",
    })
    assert verified.status == TransactionStatus.FAILED
    assert verified.failure_reason == "insufficient balance"
    assert order_service.get_order(db, order.id).status == OrderStatus.PENDING


def test_verify_unknown_gateway_status_stays_pending(db, transaction):
    verified = transaction_service.verify_esewa_payment(db, {
        "transaction_code": str(transaction.id),
        "status": "AMBIGUOUS",
    })
    assert verified.status == TransactionStatus.PENDING


def test_verify_rejects_underpayment(db, transaction):
    with pytest.raises(ValidationError):
        transaction_service.verify_esewa_payment(db, {
            "transaction_code": str(transaction.id),
            "status": "COMPLETE",
            "total_amount": "24.00",
        })
    assert transaction_service.get_transaction(db, transaction.id).status == TransactionStatus.PENDING


def test_verify_rejects_malformed_code(db, transaction):
    with pytest.raises(ValidationError):
        transaction_service.verify_esewa_payment(db, {"transaction_code": "not-a-uuid", "status": "COMPLETE"})


def test_verify_checks_signature(db, transaction):
    payload = {
        "transaction_uuid": str(transaction.id),
        "status": "COMPLETE",
        "total_amount": "25.00",
        "product_code": "EPAYTEST",
        "signed_field_names": "total_amount,transaction_uuid,product_code",
    }

    with pytest.raises(ValidationError, match="signature"):
        transaction_service.verify_esewa_payment(db, dict(payload, signature="forged"))

    payload["signature"] = esewa_client.sign(payload, payload["signed_field_names"])
    verified = transaction_service.verify_esewa_payment(db, payload)
    assert verified.status == TransactionStatus.SUCCESS


def test_delete_order_removes_transaction(db, transaction, order):
    transaction_id = transaction.id
    order_service.delete_order(db, order.id)
    with pytest.raises(NotFoundError):
        transaction_service.get_transaction(db, transaction_id)


def _set_status_elsewhere(model, row_id, status):
    # Commit a status change from another session, leaving the caller's copy stale
    with SessionLocal() as other:
        other.execute(update(model).where(model.id == row_id).values(status=status))
        other.commit()


def test_concurrent_create_for_same_order_conflicts(db, order, customer, monkeypatch):
    order_id, user_id = order.id, customer.id
    real_to_money = transaction_service.to_money
    rival_inserted = []

    # Another request inserts its transaction right after the existence check
    def to_money_after_rival_insert(value):
        if not rival_inserted:
            with SessionLocal() as rival:
                rival.add(Transaction(
                    order_id=order_id, user_id=user_id, payment_method=PaymentMethod.CASH,
                    amount=Decimal("25.00"), status=TransactionStatus.PENDING,
                ))
                rival.commit()
            rival_inserted.append(True)
        return real_to_money(value)

    monkeypatch.setattr(transaction_service, "to_money", to_money_after_rival_insert)

    with pytest.raises(ConflictError):
        transaction_service.create_transaction(db, order_id, PaymentMethod.ESEWA, Decimal("25.00"), customer)

    rows = db.query(Transaction).filter(Transaction.order_id == order_id).all()
    assert len(rows) == 1
    assert rows[0].payment_method == PaymentMethod.CASH


def test_stale_transaction_status_update_is_rejected(db, transaction, order):
    transaction_id, order_id = transaction.id, order.id
    _set_status_elsewhere(Transaction, transaction_id, TransactionStatus.FAILED)

    with pytest.raises(ConflictError):
        transaction_service.update_transaction_status(db, transaction_id, TransactionStatus.SUCCESS)

    assert transaction_service.get_transaction(db, transaction_id).status == TransactionStatus.FAILED
    assert order_service.get_order(db, order_id).status == OrderStatus.PENDING


def test_stale_initiate_is_rejected(db, transaction, customer):
    transaction_id = transaction.id
    _set_status_elsewhere(Transaction, transaction_id, TransactionStatus.CANCELLED)

    with pytest.raises(ConflictError):
        transaction_service.initiate_esewa_payment(db, transaction_id, _esewa_details(), customer)

    current = transaction_service.get_transaction(db, transaction_id)
    assert current.status == TransactionStatus.CANCELLED
    assert current.payment_url is None


def test_stale_order_status_update_is_rejected(db, order):
    order_id = order.id
    _set_status_elsewhere(Order, order_id, OrderStatus.CANCELLED)

    with pytest.raises(ConflictError):
        order_service.update_order_status(db, order_id, OrderStatus.PAID)

    assert order_service.get_order(db, order_id).status == OrderStatus.CANCELLED
