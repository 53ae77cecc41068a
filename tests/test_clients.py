# tests/test_clients.py
import httpx
import pytest

from primecod_client import create_primecod_client
from shopify_client import create_shopify_client, order_gid
from vendors import ShopifyAPIError


def test_primecod_client_sends_bearer_token_and_page(config):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"data": [{"reference": "PCOD-1"}]})

    with create_primecod_client(config, transport=httpx.MockTransport(handler)) as client:
        leads = client.get_leads(4)

    assert leads == [{"reference": "PCOD-1"}]
    assert seen[0].headers["Authorization"] == "Bearer primecod_test"
    assert seen[0].url.path == "/api/leads"
    assert seen[0].url.params["page"] == "4"


def test_primecod_client_tolerates_missing_data_key(config):
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"message": "ok"}))
    with create_primecod_client(config, transport=transport) as client:
        assert client.get_leads(1) == []


def test_shopify_client_uses_store_url_and_token(config):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"order": {"id": 1}})

    with create_shopify_client(config, transport=httpx.MockTransport(handler)) as client:
        assert client.get_order(1) == {"id": 1}

    assert str(seen[0].url) == "https://test-store.myshopify.com/admin/api/2024-01/orders/1.json"
    assert seen[0].headers["X-Shopify-Access-Token"] == "shpat_test"


def test_shopify_get_order_returns_none_on_404(config):
    transport = httpx.MockTransport(lambda request: httpx.Response(404, json={"errors": "Not Found"}))
    with create_shopify_client(config, transport=transport) as client:
        assert client.get_order(9) is None


def test_shopify_iter_orders_follows_next_link(config):
    next_url = "https://test-store.myshopify.com/admin/api/2024-01/orders.json?limit=250&page_info=abc"

    def handler(request):
        if request.url.params.get("page_info") == "abc":
            return httpx.Response(200, json={"orders": [{"id": 2}]})
        return httpx.Response(
            200,
            json={"orders": [{"id": 1}]},
            headers={"Link": f'<{next_url}>; rel="next"'},
        )

    with create_shopify_client(config, transport=httpx.MockTransport(handler)) as client:
        orders = list(client.iter_orders({"status": "any", "limit": 250}, max_pages=5))
        first_page_only = list(client.iter_orders({"status": "any", "limit": 250}, max_pages=1))

    assert [o["id"] for o in orders] == [1, 2]
    assert [o["id"] for o in first_page_only] == [1]


def test_shopify_graphql_errors_raise(config):
    transport = httpx.MockTransport(
        lambda request: httpx.Response(200, json={"errors": [{"message": "Access denied"}]})
    )
    with create_shopify_client(config, transport=transport) as client:
        with pytest.raises(ShopifyAPIError, match="Access denied"):
            client.graphql("{ shop { name } }")


def test_shopify_http_error_carries_status_and_payload(config):
    transport = httpx.MockTransport(lambda request: httpx.Response(422, json={"errors": {"tags": ["too long"]}}))
    with create_shopify_client(config, transport=transport) as client:
        with pytest.raises(ShopifyAPIError) as excinfo:
            client.update_order(1, {"tags": "x"})
    assert excinfo.value.status_code == 422
    assert excinfo.value.payload == {"errors": {"tags": ["too long"]}}


def test_order_gid():
    assert order_gid(6433894957307) == "gid://shopify/Order/6433894957307"
