"""In-memory Razorpay Orders API behind a requests-style session."""

import hashlib
import hmac
import json
import re
from dataclasses import dataclass, field
from typing import Any

import requests

FailureMode = str  # "timeout" | "connect" | "server_error" | "reject" | "garbage"

_ORDERS_PATH = re.compile(r".*/v1/orders$")
_PAYMENTS_PATH = re.compile(r".*/v1/orders/(?P<order_id>[^/]+)/payments$")


def sign(order_id: str, payment_id: str, secret: str) -> str:
    """Signature Razorpay attaches to a checkout callback."""
    return hmac.new(secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


def _response(status_code: int, body: Any = None, text: str | None = None) -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    response._content = (text if text is not None else json.dumps(body)).encode()
    response.headers["Content-Type"] = "application/json"
    return response


@dataclass
class RecordedRequest:
    method: str
    url: str
    auth: tuple[str, str] | None
    timeout: float | None
    body: dict[str, Any] = field(default_factory=dict)


class _FakeSession:
    """The two session methods the SDK calls."""

    def __init__(self, api: "FakeRazorpay") -> None:
        self._api = api

    def post(self, url: str, **kwargs: Any) -> requests.Response:
        return self._api.handle("POST", url, **kwargs)

    def get(self, url: str, **kwargs: Any) -> requests.Response:
        return self._api.handle("GET", url, **kwargs)


class FakeRazorpay:
    """
    Minimal Razorpay Orders API.

    Set ``fail_with`` to make every request fail in a given way.
    """

    def __init__(self) -> None:
        self.orders: dict[str, dict[str, object]] = {}
        self.payments: dict[str, list[dict[str, object]]] = {}
        self.requests: list[RecordedRequest] = []
        self.fail_with: FailureMode | None = None
        self._counter = 0
        self.session = _FakeSession(self)

    @property
    def order_creations(self) -> int:
        return sum(1 for r in self.requests if r.method == "POST" and _ORDERS_PATH.match(r.url))

    def handle(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        data = kwargs.get("data")
        self.requests.append(
            RecordedRequest(
                method=method,
                url=url,
                auth=kwargs.get("auth"),
                timeout=kwargs.get("timeout"),
                body=json.loads(data) if isinstance(data, str) and data else {},
            )
        )

        match self.fail_with:
            case "timeout":
                raise requests.exceptions.ReadTimeout("timed out")
            case "connect":
                raise requests.exceptions.ConnectionError("connection refused")
            case "server_error":
                return _response(502, {"error": {"code": "SERVER_ERROR", "description": "upstream"}})
            case "reject":
                return _response(
                    400,
                    {"error": {"code": "BAD_REQUEST_ERROR", "description": "The amount must be atleast INR 1.00"}},
                )
            case "garbage":
                return _response(200, text="<html>maintenance</html>")

        if method == "POST" and _ORDERS_PATH.match(url):
            body = self.requests[-1].body
            self._counter += 1
            order_id = f"order_TEST{self._counter:010d}"
            order = {
                "id": order_id,
                "entity": "order",
                "amount": body["amount"],
                "currency": body["currency"],
                "receipt": body["receipt"],
                "notes": body.get("notes", {}),
                "status": "created",
            }
            self.orders[order_id] = order
            return _response(200, order)

        if method == "GET" and (match := _PAYMENTS_PATH.match(url)):
            items = self.payments.get(match["order_id"], [])
            return _response(200, {"entity": "collection", "count": len(items), "items": items})

        return _response(404, {"error": {"code": "BAD_REQUEST_ERROR", "description": "Not found"}})

    def add_payment(self, order_id: str, payment_id: str, status: str = "captured") -> None:
        order = self.orders[order_id]
        self.payments.setdefault(order_id, []).append(
            {
                "id": payment_id,
                "entity": "payment",
                "order_id": order_id,
                "amount": order["amount"],
                "currency": order["currency"],
                "status": status,
            }
        )
