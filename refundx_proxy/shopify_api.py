from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

_STAGED_UPLOAD_MUTATION = """
mutation stagedUploadsCreate($input: [StagedUploadInput!]!) {
    stagedUploadsCreate(input: $input) {
        stagedTargets {
            url
            resourceUrl
            parameters {
                name
                value
            }
        }
        userErrors {
            field
            message
        }
    }
}
"""

_FILE_CREATE_MUTATION = """
mutation fileCreate($files: [FileCreateInput!]!) {
    fileCreate(files: $files) {
        files {
            alt
            ... on GenericFile {
                url
            }
            ... on MediaImage {
                image {
                    url
                }
            }
        }
        userErrors {
            field
            message
        }
    }
}
"""

_PRODUCT_VARIANTS_QUERY = """
query productVariants($id: ID!) {
    product(id: $id) {
        variants(first: 100) {
            nodes {
                id
                title
                availableForSale
            }
        }
    }
}
"""


class ShopifyAdminError(RuntimeError):
    def __init__(self, *, message: str, status_code: int = 502) -> None:
        super().__init__(message)
        self.status_code = status_code


def product_gid(product_id: int | str) -> str:
    return f"gid://shopify/Product/{product_id}"


def variant_gid(variant_id: int | str) -> str:
    return f"gid://shopify/ProductVariant/{variant_id}"


class ShopifyAdminClient:
    def __init__(
        self,
        *,
        access_token: str | None,
        api_version: str,
        timeout: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._access_token = access_token
        self._api_version = api_version
        self._timeout = timeout
        self._transport = transport

    def _admin_url(self, shop_domain: str, path: str) -> str:
        return f"https://{shop_domain}/admin/api/{self._api_version}{path}"

    def _headers(self) -> dict[str, str]:
        if not self._access_token:
            raise ShopifyAdminError(message="SHOPIFY_ADMIN_TOKEN is not configured", status_code=500)
        return {"X-Shopify-Access-Token": self._access_token}

    async def find_order(self, *, shop_domain: str, number: str, email: str) -> dict[str, Any] | None:
        response = await self.rest_get(
            shop_domain=shop_domain,
            path="/orders.json",
            params={
                "name": f"#{number}",
                "email": email,
                "status": "any",
                "fields": "id,currency,line_items",
            },
        )
        orders = response.get("orders") or []
        if not orders or not isinstance(orders[0], dict):
            return None
        return orders[0]

    async def get_product_handle(self, *, shop_domain: str, product_id: int | str) -> str:
        response = await self.rest_get(shop_domain=shop_domain, path=f"/products/{product_id}.json")
        product = response.get("product") or {}
        handle = product.get("handle")
        return handle if isinstance(handle, str) else ""

    async def get_product_handles(self, *, shop_domain: str, product_ids: list[int | str]) -> dict[str, str]:
        """Fetch handles concurrently; a product whose lookup fails maps to ``""``."""

        async def _handle_or_blank(product_id: int | str) -> str:
            try:
                return await self.get_product_handle(shop_domain=shop_domain, product_id=product_id)
            except ShopifyAdminError as exc:
                logger.warning(
                    "Product handle lookup failed",
                    extra={"shop": shop_domain, "product_id": str(product_id), "error": str(exc)},
                )
                return ""

        unique_ids = list(dict.fromkeys(str(product_id) for product_id in product_ids))
        handles = await asyncio.gather(*(_handle_or_blank(product_id) for product_id in unique_ids))
        return dict(zip(unique_ids, handles))

    async def list_variants(self, *, shop_domain: str, product_gid: str) -> list[dict[str, Any]]:
        data = await self.graphql(
            shop_domain=shop_domain,
            query=_PRODUCT_VARIANTS_QUERY,
            variables={"id": product_gid},
        )
        product = data.get("product") or {}
        nodes = (product.get("variants") or {}).get("nodes") or []
        return [node for node in nodes if isinstance(node, dict)]

    async def create_staged_upload(
        self,
        *,
        shop_domain: str,
        filename: str,
        mime_type: str,
        file_size: int | str,
    ) -> dict[str, Any] | None:
        data = await self.graphql(
            shop_domain=shop_domain,
            query=_STAGED_UPLOAD_MUTATION,
            variables={
                "input": [
                    {
                        "resource": "FILE",
                        "filename": filename,
                        "mimeType": mime_type,
                        "fileSize": str(file_size),
                        "httpMethod": "POST",
                    }
                ]
            },
        )
        create_data = data.get("stagedUploadsCreate") or {}
        self._assert_no_user_errors(
            user_errors=create_data.get("userErrors") or [],
            mutation_name="stagedUploadsCreate",
        )
        targets = create_data.get("stagedTargets") or []
        if not targets or not isinstance(targets[0], dict):
            return None
        return targets[0]

    async def create_file(self, *, shop_domain: str, resource_url: str, filename: str) -> str | None:
        data = await self.graphql(
            shop_domain=shop_domain,
            query=_FILE_CREATE_MUTATION,
            variables={"files": [{"alt": filename, "contentType": "FILE", "originalSource": resource_url}]},
        )
        create_data = data.get("fileCreate") or {}
        self._assert_no_user_errors(
            user_errors=create_data.get("userErrors") or [],
            mutation_name="fileCreate",
        )
        files = create_data.get("files") or []
        if not files or not isinstance(files[0], dict):
            return None
        created = files[0]
        url = created.get("url") or (created.get("image") or {}).get("url")
        return url if isinstance(url, str) and url else None

    @staticmethod
    def _assert_no_user_errors(*, user_errors: list[dict[str, Any]], mutation_name: str) -> None:
        if user_errors:
            messages = "; ".join(str(error.get("message")) for error in user_errors)
            raise ShopifyAdminError(message=f"{mutation_name} failed: {messages}", status_code=409)

    async def rest_get(
        self,
        *,
        shop_domain: str,
        path: str,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        return await self._request_json(
            "GET",
            url=self._admin_url(shop_domain, path),
            params=params,
            headers=self._headers(),
        )

    async def graphql(
        self,
        *,
        shop_domain: str,
        query: str,
        variables: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        headers = {"Content-Type": "application/json", **self._headers()}
        response = await self._request_json(
            "POST",
            url=self._admin_url(shop_domain, "/graphql.json"),
            json={"query": query, "variables": variables or {}},
            headers=headers,
        )
        data = response.get("data")
        errors = response.get("errors")
        if errors:
            raise ShopifyAdminError(message=f"Admin GraphQL errors: {errors}")
        if not isinstance(data, dict):
            raise ShopifyAdminError(message="Admin GraphQL response is missing data")
        return data

    async def _request_json(
        self,
        method: str,
        *,
        url: str,
        headers: dict[str, str],
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.request(method, url, params=params, json=json, headers=headers)
        except httpx.RequestError as exc:
            raise ShopifyAdminError(message=f"Network error while calling Shopify: {exc}") from exc

        if response.status_code >= 400:
            raise ShopifyAdminError(
                message=f"Shopify API call failed ({response.status_code}): {response.text}",
                status_code=502,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise ShopifyAdminError(message="Shopify API returned invalid JSON") from exc

        if not isinstance(body, dict):
            raise ShopifyAdminError(message="Shopify API response must be a JSON object")
        return body
