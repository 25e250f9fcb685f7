# backend/utils/esewa_client.py
import base64
import hashlib
import hmac
import httpx
import logging
from decimal import Decimal
from urllib.parse import urlencode, urljoin
from config import settings

logger = logging.getLogger(__name__)

# Fields eSewa signs on both the outbound form and the callback
DEFAULT_SIGNED_FIELDS = "total_amount,transaction_uuid,product_code"


def format_amount(amount) -> str:
    return f"{Decimal(str(amount)):.2f}"


class EsewaClient:
    def __init__(self):
        # Initialize configuration and callback URLs
        self.payment_url = settings.ESEWA_PAYMENT_URL
        self.status_url = settings.ESEWA_STATUS_URL
        self.merchant_code = settings.ESEWA_MERCHANT_CODE
        self.secret_key = settings.ESEWA_SECRET_KEY
        self.require_signature = settings.ESEWA_REQUIRE_SIGNATURE
        self.timeout = settings.ESEWA_TIMEOUT_SECONDS
        self.success_url = urljoin(settings.FRONTEND_URL, "/payment/success")
        self.failure_url = urljoin(settings.FRONTEND_URL, "/payment/failure")

    def sign(self, fields: dict, signed_field_names: str = DEFAULT_SIGNED_FIELDS) -> str:
        """HMAC-SHA256 over "name=value" pairs joined by commas, base64 encoded."""
        message = ",".join(
            f"{name}={fields.get(name, '')}" for name in signed_field_names.split(",")
        )
        digest = hmac.new(self.secret_key.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).digest()
        return base64.b64encode(digest).decode("ascii")

    def verify_signature(self, payload: dict) -> bool:
        signature = payload.get("signature")
        signed_field_names = payload.get("signed_field_names")
        if not signature or not signed_field_names:
            return False
        expected = self.sign(payload, signed_field_names)
        return hmac.compare_digest(expected, signature)

    def build_payment_url(self, *, transaction_id, amount, product_code: str,
                          tax_amount=0, service_charge=0, delivery_charge=0,
                          success_url: str = None, failure_url: str = None) -> str:
        # Redirect target for the browser; the gateway echoes transaction_uuid back
        total_amount = format_amount(
            Decimal(str(amount)) + Decimal(str(tax_amount or 0))
            + Decimal(str(service_charge or 0)) + Decimal(str(delivery_charge or 0))
        )
        fields = {
            "transaction_id": str(transaction_id),
            "transaction_uuid": str(transaction_id),
            "amount": format_amount(amount),
            "tax_amount": format_amount(tax_amount or 0),
            "product_service_charge": format_amount(service_charge or 0),
            "product_delivery_charge": format_amount(delivery_charge or 0),
            "total_amount": total_amount,
            "product_code": product_code,
            "merchant_code": self.merchant_code,
            "success_url": success_url or self.success_url,
            "failure_url": failure_url or self.failure_url,
            "signed_field_names": DEFAULT_SIGNED_FIELDS,
        }
        fields["signature"] = self.sign(fields)
        return f"{self.payment_url}?{urlencode(fields)}"

    async def check_status(self, *, transaction_id, total_amount, product_code: str) -> dict:
        # Ask the gateway for the settlement state of a transaction
        params = {
            "product_code": product_code,
            "total_amount": format_amount(total_amount),
            "transaction_uuid": str(transaction_id),
        }
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.get(self.status_url, params=params)
                response.raise_for_status()
                return response.json()
            except httpx.HTTPStatusError as e:
                logger.error(f"eSewa status check error: {e.response.status_code} {e.response.text}")
                raise
            except httpx.RequestError as e:
                logger.error(f"eSewa status check error: {e}")
                raise

esewa_client = EsewaClient()
