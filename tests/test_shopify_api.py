from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from refundx_proxy.shopify_api import ShopifyAdminClient, ShopifyAdminError


def _client(handler=None, *, access_token: str | None = "shpat_test_token") -> ShopifyAdminClient:
    transport = httpx.MockTransport(handler) if handler else None
    return ShopifyAdminClient(
        access_token=access_token,
        api_version="2025-07",
        timeout=5.0,
        transport=transport,
    )


def test_find_order_calls_rest_endpoint_with_lookup_filters():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"orders": [{"id": 1, "currency": "USD", "line_items": []}]})

    order = asyncio.run(
        _client(handler).find_order(shop_domain="example.myshopify.com", number="1001", email="a@b.com")
    )

    assert order == {"id": 1, "currency": "USD", "line_items": []}
    request = seen[0]
    assert request.method == "GET"
    assert request.url.host == "example.myshopify.com"
    assert request.url.path == "/admin/api/2025-07/orders.json"
    assert request.url.params["name"] == "#1001"
    assert request.url.params["email"] == "a@b.com"
    assert request.url.params["status"] == "any"
    assert request.url.params["fields"] == "id,currency,line_items"
    assert request.headers["X-Shopify-Access-Token"] == "shpat_test_token"


def test_find_order_returns_none_when_no_match():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"orders": []})

    order = asyncio.run(_client(handler).find_order(shop_domain="example.myshopify.com", number="1", email="x@y.z"))

    assert order is None


def test_rest_get_raises_on_http_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, text="Invalid API key or access token")

    with pytest.raises(ShopifyAdminError, match=r"Shopify API call failed \(401\)") as exc_info:
        asyncio.run(_client(handler).rest_get(shop_domain="example.myshopify.com", path="/shop.json"))

    assert exc_info.value.status_code == 502


def test_rest_get_raises_on_network_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ShopifyAdminError, match="Network error while calling Shopify"):
        asyncio.run(_client(handler).rest_get(shop_domain="example.myshopify.com", path="/shop.json"))


def test_rest_get_raises_on_invalid_json():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>maintenance</html>")

    with pytest.raises(ShopifyAdminError, match="invalid JSON"):
        asyncio.run(_client(handler).rest_get(shop_domain="example.myshopify.com", path="/shop.json"))


def test_missing_admin_token_is_a_configuration_error():
    with pytest.raises(ShopifyAdminError, match="SHOPIFY_ADMIN_TOKEN is not configured") as exc_info:
        asyncio.run(
            _client(access_token=None).rest_get(shop_domain="example.myshopify.com", path="/shop.json")
        )

    assert exc_info.value.status_code == 500


def test_graphql_posts_query_and_variables():
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/admin/api/2025-07/graphql.json"
        assert request.headers["Content-Type"] == "application/json"
        seen.append(json.loads(request.content))
        return httpx.Response(
            200,
            json={"data": {"product": {"variants": {"nodes": [{"id": "gid://shopify/ProductVariant/1"}]}}}},
        )

    variants = asyncio.run(
        _client(handler).list_variants(shop_domain="example.myshopify.com", product_gid="gid://shopify/Product/1")
    )

    assert variants == [{"id": "gid://shopify/ProductVariant/1"}]
    assert seen[0]["variables"] == {"id": "gid://shopify/Product/1"}
    assert "productVariants" in seen[0]["query"]


def test_graphql_raises_on_top_level_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"errors": [{"message": "Throttled"}]})

    with pytest.raises(ShopifyAdminError, match="Admin GraphQL errors"):
        asyncio.run(_client(handler).graphql(shop_domain="example.myshopify.com", query="{ shop { name } }"))


def test_list_variants_handles_missing_product():
    client = _client()

    async def fake_graphql(*, shop_domain: str, query: str, variables: dict | None = None):
        return {"product": None}

    client.graphql = fake_graphql  # type: ignore[method-assign]

    assert asyncio.run(client.list_variants(shop_domain="example.myshopify.com", product_gid="gid://x")) == []


def test_create_staged_upload_returns_first_target():
    client = _client()
    captured: list[dict] = []

    async def fake_graphql(*, shop_domain: str, query: str, variables: dict | None = None):
        captured.append(variables or {})
        return {
            "stagedUploadsCreate": {
                "stagedTargets": [{"url": "https://upload", "resourceUrl": "https://resource", "parameters": []}],
                "userErrors": [],
            }
        }

    client.graphql = fake_graphql  # type: ignore[method-assign]

    target = asyncio.run(
        client.create_staged_upload(
            shop_domain="example.myshopify.com",
            filename="receipt.png",
            mime_type="image/png",
            file_size=2048,
        )
    )

    assert target == {"url": "https://upload", "resourceUrl": "https://resource", "parameters": []}
    assert captured[0]["input"] == [
        {
            "resource": "FILE",
            "filename": "receipt.png",
            "mimeType": "image/png",
            "fileSize": "2048",
            "httpMethod": "POST",
        }
    ]


def test_create_staged_upload_raises_on_user_errors():
    client = _client()

    async def fake_graphql(*, shop_domain: str, query: str, variables: dict | None = None):
        return {
            "stagedUploadsCreate": {
                "stagedTargets": [],
                "userErrors": [{"field": ["input"], "message": "File size is too large"}],
            }
        }

    client.graphql = fake_graphql  # type: ignore[method-assign]

    with pytest.raises(ShopifyAdminError, match="stagedUploadsCreate failed: File size is too large"):
        asyncio.run(
            client.create_staged_upload(
                shop_domain="example.myshopify.com",
                filename="receipt.png",
                mime_type="image/png",
                file_size=10**10,
            )
        )


@pytest.mark.parametrize(
    ("created", "expected"),
    [
        ({"alt": "receipt.png", "url": "https://cdn/receipt.pdf"}, "https://cdn/receipt.pdf"),
        ({"alt": "receipt.png", "image": {"url": "https://cdn/receipt.png"}}, "https://cdn/receipt.png"),
        ({"alt": "receipt.png", "image": None}, None),
    ],
)
def test_create_file_reads_url_from_file_node(created, expected):
    client = _client()

    async def fake_graphql(*, shop_domain: str, query: str, variables: dict | None = None):
        assert variables == {
            "files": [{"alt": "receipt.png", "contentType": "FILE", "originalSource": "https://resource"}]
        }
        return {"fileCreate": {"files": [created], "userErrors": []}}

    client.graphql = fake_graphql  # type: ignore[method-assign]

    url = asyncio.run(
        client.create_file(shop_domain="example.myshopify.com", resource_url="https://resource", filename="receipt.png")
    )

    assert url == expected


def test_get_product_handles_blanks_failed_lookups():
    client = _client()

    async def fake_get_product_handle(*, shop_domain: str, product_id):
        if str(product_id) == "2":
            raise ShopifyAdminError(message="Shopify API call failed (404): Not Found")
        return f"handle-{product_id}"

    client.get_product_handle = fake_get_product_handle  # type: ignore[method-assign]

    handles = asyncio.run(client.get_product_handles(shop_domain="example.myshopify.com", product_ids=[1, 2, 1]))

    assert handles == {"1": "handle-1", "2": ""}
