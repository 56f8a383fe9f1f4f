from dataclasses import dataclass, field
from typing import Protocol

import midtransclient
import requests
from midtransclient.error_midtrans import JSONDecodeError, MidtransAPIError

from app.core.config import SITE_URL
from app.core.exceptions import GatewayError, TransactionNotFoundError
from app.core.logging_config import get_logger

logger = get_logger("payment")


@dataclass
class GatewayStatus:
    order_id: str
    transaction_status: str
    fraud_status: str | None = None
    payment_type: str | None = None
    transaction_id: str | None = None
    raw: dict = field(default_factory=dict)

    @classmethod
    def from_response(cls, response: dict):
        return cls(
            order_id=response.get("order_id", ""),
            transaction_status=response.get("transaction_status", ""),
            fraud_status=response.get("fraud_status"),
            payment_type=response.get("payment_type"),
            transaction_id=response.get("transaction_id"),
            raw=response,
        )


class PaymentGateway(Protocol):
    def create_transaction(self, order_id: str, amount: int, items: list, customer: dict) -> dict: ...

    def query_status(self, order_id: str) -> GatewayStatus: ...

    def verify_notification(self, payload: dict) -> GatewayStatus: ...


class _TimeoutSession(requests.Session):
    def __init__(self, timeout: float):
        super().__init__()
        self.timeout = timeout

    def request(self, *args, **kwargs):
        kwargs.setdefault("timeout", self.timeout)
        return super().request(*args, **kwargs)


class MidtransGateway:
    def __init__(self, server_key: str, client_key: str, is_production: bool = False, timeout: float = 10):
        self.snap = midtransclient.Snap(
            is_production=is_production,
            server_key=server_key,
            client_key=client_key,
        )
        # The SDK calls requests without a timeout
        self.snap.http_client.http_client = _TimeoutSession(timeout)

    def _call(self, action: str, order_id: str, fn, *args):
        try:
            return fn(*args)
        except MidtransAPIError as e:
            body = e.api_response_dict or {}
            if e.http_status_code == 404 or str(body.get("status_code")) == "404":
                logger.warning(f"Gateway has no transaction {order_id} ({action})")
                raise TransactionNotFoundError(f"Transaction {order_id} not found at gateway")
            logger.error(f"Gateway {action} failed for {order_id}: HTTP {e.http_status_code} {e.message}")
            raise GatewayError(f"Payment gateway error during {action}")
        except JSONDecodeError as e:
            # 5xx pages from the gateway edge are HTML, not JSON
            logger.error(f"Gateway {action} returned an unreadable body for {order_id}: {e}")
            raise GatewayError(f"Payment gateway error during {action}")
        except requests.RequestException as e:
            logger.error(f"Gateway {action} unreachable for {order_id}: {e}")
            raise GatewayError(f"Payment gateway unreachable during {action}")

    def create_transaction(self, order_id: str, amount: int, items: list, customer: dict) -> dict:
        parameter = {
            "transaction_details": {"order_id": order_id, "gross_amount": amount},
            "customer_details": customer,
            "item_details": items,
            "callbacks": {"finish": f"{SITE_URL}/booking/status-check?order_id={order_id}"},
        }
        transaction = self._call("create_transaction", order_id, self.snap.create_transaction, parameter)
        return {"redirect_url": transaction["redirect_url"], "token": transaction["token"]}

    def query_status(self, order_id: str) -> GatewayStatus:
        response = self._call("status", order_id, self.snap.transactions.status, order_id)
        return GatewayStatus.from_response(response)

    def verify_notification(self, payload: dict) -> GatewayStatus:
        # The SDK re-fetches the status by transaction id, so a forged body cannot
        # report a state the gateway does not hold.
        order_id = payload.get("order_id", "")
        if not payload.get("transaction_id"):
            raise GatewayError(f"Notification for {order_id} carries no transaction id")
        response = self._call("notification", order_id, self.snap.transactions.notification, payload)
        return GatewayStatus.from_response(response)
