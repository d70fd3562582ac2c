# blueprints/orders/payments.py
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import razorpay
import requests
from razorpay.errors import BadRequestError, GatewayError, ServerError, SignatureVerificationError
from flask import current_app

log = logging.getLogger(__name__)

GATEWAY_EXTENSION_KEY = "payment_gateway"


class PaymentGatewayError(RuntimeError):
    """Шлюз недоступен или ответил ошибкой."""


@dataclass
class GatewayOrder:
    id: str
    amount: int      # в пайсах
    currency: str
    receipt: str


class RazorpayClient:
    """Обёртка над razorpay.Client: создание заказа и проверка подписи оплаты."""

    def __init__(self, key_id: str, key_secret: str, base_url: Optional[str] = None):
        if not key_id or not key_secret:
            raise PaymentGatewayError("razorpay credentials not configured")
        self.key_id = key_id
        options = {"base_url": base_url.rstrip("/")} if base_url else {}
        self.client = razorpay.Client(auth=(key_id, key_secret), **options)

    def create_order(self, *, amount: int, currency: str, receipt: str, notes: Optional[Dict[str, Any]] = None) -> GatewayOrder:
        body = {"amount": amount, "currency": currency, "receipt": receipt, "notes": notes or {}}
        try:
            data = self.client.order.create(data=body)
        except (BadRequestError, GatewayError, ServerError) as e:
            log.error("razorpay rejected order %s: %s", receipt, e)
            raise PaymentGatewayError(f"gateway rejected order: {e}") from e
        except requests.RequestException as e:
            log.exception("network error creating razorpay order %s", receipt)
            raise PaymentGatewayError("gateway unreachable") from e
        return GatewayOrder(id=data["id"], amount=int(data.get("amount", amount)),
                            currency=data.get("currency", currency), receipt=data.get("receipt", receipt))

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """HMAC-SHA256(key_secret, "order_id|payment_id") средствами SDK."""
        if not signature:
            return False
        try:
            self.client.utility.verify_payment_signature({
                "razorpay_order_id": order_id,
                "razorpay_payment_id": payment_id,
                "razorpay_signature": signature,
            })
        except SignatureVerificationError:
            return False
        return True


def get_gateway():
    """Клиент шлюза для текущего приложения; в тестах подменяется через app.extensions."""
    gw = current_app.extensions.get(GATEWAY_EXTENSION_KEY)
    if gw is None:
        cfg = current_app.config
        gw = RazorpayClient(cfg.get("RAZORPAY_KEY_ID", ""), cfg.get("RAZORPAY_KEY_SECRET", ""),
                            cfg.get("RAZORPAY_API_URL") or None)
        current_app.extensions[GATEWAY_EXTENSION_KEY] = gw
    return gw
