# tests/fakes.py
from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional, Tuple

import httpx

from primecod_client import create_primecod_client
from services.order_updates import parse_tags
from shopify_client import create_shopify_client

ORDER_PATH = re.compile(r"/orders/(\d+)(?:/(\w+))?\.json$")


def make_order(order_id: int, **fields: Any) -> Dict[str, Any]:
    order = {
        "id": order_id,
        "order_number": 1000 + order_id,
        "name": f"#{1000 + order_id}",
        "email": None,
        "phone": None,
        "financial_status": "pending",
        "fulfillment_status": None,
        "tags": "",
        "note": None,
        "created_at": "2025-06-10T10:00:00+02:00",
        "currency": "PLN",
        "total_price": "199.00",
        "line_items": [{"id": order_id * 10, "quantity": 1}],
    }
    order.update(fields)
    return order


def make_lead(reference: str, **fields: Any) -> Dict[str, Any]:
    lead = {
        "reference": reference,
        "email": None,
        "phone": None,
        "shipping_status": "order placed",
        "confirmation_status": "confirmed",
        "tracking_number": None,
        "created_at": "2025-06-10 09:00:00",
    }
    lead.update(fields)
    return lead


class FakeShopify:
    """In-memory stand-in for the Shopify Admin REST and GraphQL endpoints."""

    def __init__(self, orders: Optional[List[Dict[str, Any]]] = None) -> None:
        self.orders: Dict[int, Dict[str, Any]] = {}
        self.calls: List[Tuple[str, Any]] = []
        self.fail_graphql: Dict[str, Dict[str, Any]] = {}
        self.cancel_status = 200
        self.transactions: Dict[int, List[Dict[str, Any]]] = {}
        for order in orders or []:
            self.add(order)

    def add(self, order: Dict[str, Any]) -> Dict[str, Any]:
        self.orders[int(order["id"])] = order
        return order

    def client(self, config):
        return create_shopify_client(config, transport=httpx.MockTransport(self.handle))

    def operations(self, name: str) -> List[Any]:
        return [payload for op, payload in self.calls if op == name]

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.endswith("/graphql.json"):
            body = json.loads(request.content)
            return self._graphql(body["query"], body.get("variables") or {})
        if path.endswith("/orders.json"):
            self.calls.append(("list_orders", dict(request.url.params)))
            orders = list(self.orders.values())
            email = request.url.params.get("email")
            if email:
                orders = [o for o in orders if (o.get("email") or "").lower() == email.lower()]
            return httpx.Response(200, json={"orders": orders})
        match = ORDER_PATH.search(path)
        if not match:
            return httpx.Response(404, json={"errors": "Not Found"})
        order_id, sub = int(match.group(1)), match.group(2)
        order = self.orders.get(order_id)
        if order is None:
            return httpx.Response(404, json={"errors": "Not Found"})
        if sub == "transactions":
            return httpx.Response(200, json={"transactions": self.transactions.get(order_id, [])})
        if sub == "cancel":
            self.calls.append(("cancel", order_id))
            if self.cancel_status >= 400:
                return httpx.Response(self.cancel_status, json={"errors": "cannot cancel"})
            order["cancelled_at"] = "2025-06-12T10:00:00Z"
            return httpx.Response(200, json={"order": order})
        if sub == "close":
            self.calls.append(("close", order_id))
            order["closed_at"] = "2025-06-12T10:00:00Z"
            return httpx.Response(200, json={"order": order})
        if request.method == "PUT":
            fields = json.loads(request.content)["order"]
            self.calls.append(("update_order", fields))
            for key in ("tags", "note"):
                if key in fields:
                    order[key] = fields[key]
            return httpx.Response(200, json={"order": order})
        return httpx.Response(200, json={"order": order})

    def _order_for_gid(self, gid: str) -> Optional[Dict[str, Any]]:
        return self.orders.get(int(gid.rsplit("/", 1)[-1]))

    def _graphql(self, query: str, variables: Dict[str, Any]) -> httpx.Response:
        for name, data in self.fail_graphql.items():
            if name in query:
                self.calls.append((name, variables))
                return httpx.Response(200, json={"data": data})

        if "fulfillmentCreate" in query:
            self.calls.append(("fulfillmentCreate", variables))
            tracking = variables["fulfillment"]["trackingInfo"]
            gid = variables["fulfillment"]["lineItemsByFulfillmentOrder"][0]["fulfillmentOrderId"]
            order = self.orders[int(gid.rsplit("/", 1)[-1])]
            order["fulfillment_status"] = "fulfilled"
            return httpx.Response(
                200,
                json={
                    "data": {
                        "fulfillmentCreate": {
                            "fulfillment": {"id": "gid://shopify/Fulfillment/1", "status": "SUCCESS", "trackingInfo": [tracking]},
                            "userErrors": [],
                        }
                    }
                },
            )
        if "fulfillmentOrders" in query:
            order = self._order_for_gid(variables["orderId"])
            if order is None:
                return httpx.Response(200, json={"data": {"order": None}})
            # fulfillment order ids reuse the order id so the fake can find it again
            node = {
                "id": f"gid://shopify/FulfillmentOrder/{order['id']}",
                "status": "CLOSED" if order.get("fulfillment_status") == "fulfilled" else "OPEN",
                "lineItems": {
                    "edges": [
                        {"node": {"id": f"gid://shopify/FulfillmentOrderLineItem/{item['id']}", "remainingQuantity": item["quantity"]}}
                        for item in order.get("line_items") or []
                    ]
                },
            }
            return httpx.Response(
                200,
                json={"data": {"order": {"id": variables["orderId"], "name": order["name"], "fulfillmentOrders": {"edges": [{"node": node}]}}}},
            )
        if "orderMarkAsPaid" in query:
            self.calls.append(("orderMarkAsPaid", variables))
            order = self._order_for_gid(variables["input"]["id"])
            order["financial_status"] = "paid"
            self.transactions.setdefault(order["id"], []).append(
                {"id": 555, "kind": "sale", "status": "success", "gateway": "manual", "amount": order["total_price"]}
            )
            return httpx.Response(
                200,
                json={"data": {"orderMarkAsPaid": {"order": {"id": variables["input"]["id"], "displayFinancialStatus": "PAID"}, "userErrors": []}}},
            )
        if "GetRefundableOrder" in query:
            order = self._order_for_gid(variables["orderId"])
            if order is None:
                return httpx.Response(200, json={"data": {"order": None}})
            transactions = [
                {
                    "id": f"gid://shopify/OrderTransaction/{txn['id']}",
                    "kind": txn["kind"].upper(),
                    "status": txn["status"].upper(),
                    "gateway": txn["gateway"],
                    "amountSet": {"shopMoney": {"amount": txn["amount"], "currencyCode": order["currency"]}},
                }
                for txn in self.transactions.get(order["id"], [])
            ]
            return httpx.Response(
                200,
                json={
                    "data": {
                        "order": {
                            "id": variables["orderId"],
                            "lineItems": {
                                "edges": [
                                    {"node": {"id": f"gid://shopify/LineItem/{item['id']}", "quantity": item["quantity"], "refundableQuantity": item["quantity"]}}
                                    for item in order.get("line_items") or []
                                ]
                            },
                            "shippingLine": {"id": "gid://shopify/ShippingLine/1"},
                            "transactions": transactions,
                        }
                    }
                },
            )
        if "refundCreate" in query:
            self.calls.append(("refundCreate", variables))
            order = self._order_for_gid(variables["input"]["orderId"])
            order["financial_status"] = "refunded"
            return httpx.Response(
                200,
                json={"data": {"refundCreate": {"refund": {"id": "gid://shopify/Refund/1"}, "userErrors": []}}},
            )
        return httpx.Response(200, json={"errors": [{"message": "unknown operation"}]})

    def tags_of(self, order_id: int) -> List[str]:
        return parse_tags(self.orders[order_id].get("tags"))


class FakePrimeCOD:
    def __init__(self, pages: Optional[List[List[Dict[str, Any]]]] = None, status_code: int = 200) -> None:
        self.pages = pages or []
        self.status_code = status_code
        self.requested_pages: List[int] = []

    def client(self, config):
        return create_primecod_client(config, transport=httpx.MockTransport(self.handle))

    def handle(self, request: httpx.Request) -> httpx.Response:
        page = int(request.url.params.get("page", "1"))
        self.requested_pages.append(page)
        if self.status_code >= 400:
            return httpx.Response(self.status_code, json={"message": "Unauthenticated."})
        leads = self.pages[page - 1] if page <= len(self.pages) else []
        return httpx.Response(200, json={"data": leads, "current_page": page})
