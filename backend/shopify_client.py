from typing import Any, Dict, Iterator, List, Optional

import httpx

from vendors import ShopifyAPIError, raise_for_response

ORDER_PAGE_LIMIT = 250


def order_gid(order_id: Any) -> str:
    return f"gid://shopify/Order/{order_id}"


class ShopifyClient:
    def __init__(
        self,
        store: str,
        access_token: str,
        *,
        api_version: str = "2024-01",
        timeout: float = 30,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.store = store
        self.api_version = api_version
        self._client = httpx.Client(
            base_url=f"https://{store}.myshopify.com/admin/api/{api_version}",
            headers={
                "X-Shopify-Access-Token": access_token,
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "ShopifyClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _send(self, method: str, url: str, context: str, **kwargs: Any) -> httpx.Response:
        try:
            return self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise ShopifyAPIError(f"Shopify request failed during {context}: {exc}") from exc

    def _request(self, method: str, url: str, context: str, **kwargs: Any) -> Dict[str, Any]:
        response = self._send(method, url, context, **kwargs)
        return raise_for_response(response, ShopifyAPIError, context)

    def get_order(self, order_id: Any) -> Optional[Dict[str, Any]]:
        response = self._send("GET", f"/orders/{order_id}.json", f"get order {order_id}")
        if response.status_code == 404:
            return None
        body = raise_for_response(response, ShopifyAPIError, f"get order {order_id}")
        order = body.get("order")
        return order if isinstance(order, dict) else None

    def list_orders(self, **params: Any) -> List[Dict[str, Any]]:
        body = self._request("GET", "/orders.json", "list orders", params=params)
        orders = body.get("orders")
        return orders if isinstance(orders, list) else []

    def iter_orders(self, params: Dict[str, Any], max_pages: int) -> Iterator[Dict[str, Any]]:
        url: Optional[str] = "/orders.json"
        query: Optional[Dict[str, Any]] = params
        for _ in range(max_pages):
            if not url:
                return
            response = self._send("GET", url, "list orders", params=query)
            body = raise_for_response(response, ShopifyAPIError, "list orders")
            for order in body.get("orders") or []:
                yield order
            # Cursor links already carry limit and page_info.
            url = response.links.get("next", {}).get("url")
            query = None

    def search_orders_by_email(self, email: str, limit: int = 50) -> List[Dict[str, Any]]:
        return self.list_orders(email=email, status="any", limit=limit)

    def update_order(self, order_id: Any, fields: Dict[str, Any]) -> Dict[str, Any]:
        payload = {"order": {"id": order_id, **fields}}
        body = self._request("PUT", f"/orders/{order_id}.json", f"update order {order_id}", json=payload)
        return body.get("order") or {}

    def list_transactions(self, order_id: Any) -> List[Dict[str, Any]]:
        body = self._request(
            "GET", f"/orders/{order_id}/transactions.json", f"transactions of order {order_id}"
        )
        transactions = body.get("transactions")
        return transactions if isinstance(transactions, list) else []

    def cancel_order(self, order_id: Any, *, reason: str = "customer", email: bool = False) -> Dict[str, Any]:
        return self._request(
            "POST",
            f"/orders/{order_id}/cancel.json",
            f"cancel order {order_id}",
            json={"reason": reason, "email": email},
        )

    def close_order(self, order_id: Any) -> Dict[str, Any]:
        return self._request("POST", f"/orders/{order_id}/close.json", f"close order {order_id}", json={})

    def graphql(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        response = self._send(
            "POST", "/graphql.json", "graphql", json={"query": query, "variables": variables or {}}
        )
        body = raise_for_response(response, ShopifyAPIError, "graphql")
        if body.get("errors"):
            raise ShopifyAPIError(
                f"Shopify GraphQL error: {body['errors']}",
                status_code=response.status_code,
                payload=body,
            )
        return body.get("data") or {}


def create_shopify_client(config, transport: Optional[httpx.BaseTransport] = None) -> ShopifyClient:
    return ShopifyClient(
        config.shopify_store,
        config.shopify_access_token,
        api_version=config.shopify_api_version,
        timeout=config.http_timeout_seconds,
        transport=transport,
    )
