from __future__ import annotations

import logging
from typing import Any, TypeVar

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import ORJSONResponse
from pydantic import BaseModel, ValidationError

from refundx_proxy.auth_gate import require_proxy_shop
from refundx_proxy.schemas import (
    HealthResponse,
    OrderLineItem,
    OrderLookupResponse,
    StockResponse,
    StockVariant,
    UploadCompleteRequest,
    UploadCompleteResponse,
    UploadStartRequest,
    UploadStartResponse,
)
from refundx_proxy.shopify_api import ShopifyAdminClient, ShopifyAdminError, product_gid, variant_gid

router = APIRouter(prefix="/proxy", tags=["proxy"])
logger = logging.getLogger(__name__)

PayloadT = TypeVar("PayloadT", bound=BaseModel)


def get_admin_client(request: Request) -> ShopifyAdminClient:
    return request.app.state.admin_client


def _error(status_code: int, error: str, detail: str | None = None) -> ORJSONResponse:
    content = {"error": error}
    if detail is not None:
        content["detail"] = detail
    return ORJSONResponse(status_code=status_code, content=content)


def _upstream_error(exc: ShopifyAdminError, *, shop: str, operation: str) -> ORJSONResponse:
    logger.warning(
        "Admin API call failed",
        extra={"shop": shop, "operation": operation, "upstream_status": exc.status_code},
    )
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "server_error", str(exc))


async def _read_payload(request: Request, model: type[PayloadT]) -> PayloadT | None:
    """Parse the JSON body into ``model``; None when it is not a valid JSON object.

    Called from the route body so the auth dependency always runs before the
    request body is touched.
    """
    try:
        body = await request.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    try:
        return model.model_validate(body)
    except ValidationError:
        return None


def _serialize_line_item(line_item: dict[str, Any], handles: dict[str, str]) -> OrderLineItem:
    product_id = line_item.get("product_id")
    variant_id = line_item.get("variant_id")
    return OrderLineItem(
        title=line_item.get("name"),
        productId=product_gid(product_id) if product_id else None,
        variantId=variant_gid(variant_id) if variant_id else None,
        handle=handles.get(str(product_id), "") if product_id else "",
        quantity=line_item.get("quantity"),
        sku=line_item.get("sku") or "",
        available=True,
    )


@router.get("/health", response_model=HealthResponse)
async def proxy_health() -> HealthResponse:
    return HealthResponse(ok=True)


@router.get("/order", response_model=OrderLookupResponse)
async def lookup_order(
    response: Response,
    number: str | None = None,
    email: str | None = None,
    shop: str = Depends(require_proxy_shop),
    admin_client: ShopifyAdminClient = Depends(get_admin_client),
):
    if not number or not email:
        return _error(status.HTTP_400_BAD_REQUEST, "missing_params")

    try:
        order = await admin_client.find_order(shop_domain=shop, number=number, email=email)
        if order is None:
            return _error(status.HTTP_404_NOT_FOUND, "not_found")

        line_items = [item for item in order.get("line_items") or [] if isinstance(item, dict)]
        product_ids = [item["product_id"] for item in line_items if item.get("product_id")]
        handles = await admin_client.get_product_handles(shop_domain=shop, product_ids=product_ids)
    except ShopifyAdminError as exc:
        return _upstream_error(exc, shop=shop, operation="order_lookup")

    response.headers["Cache-Control"] = "no-store"
    return OrderLookupResponse(
        orderId=order.get("id"),
        currency=order.get("currency"),
        items=[_serialize_line_item(item, handles) for item in line_items],
    )


@router.get("/stock", response_model=StockResponse)
async def lookup_stock(
    response: Response,
    product_id: str | None = Query(default=None, alias="productId"),
    shop: str = Depends(require_proxy_shop),
    admin_client: ShopifyAdminClient = Depends(get_admin_client),
):
    if not product_id:
        return _error(status.HTTP_400_BAD_REQUEST, "missing_productId")

    try:
        nodes = await admin_client.list_variants(shop_domain=shop, product_gid=product_id)
    except ShopifyAdminError as exc:
        return _upstream_error(exc, shop=shop, operation="stock_lookup")

    response.headers["Cache-Control"] = "no-store"
    return StockResponse(
        variants=[
            StockVariant(id=node["id"], title=node.get("title"), available=node.get("availableForSale"))
            for node in nodes
            if isinstance(node.get("id"), str)
        ]
    )


@router.post("/upload/start", response_model=UploadStartResponse)
async def start_upload(
    request: Request,
    shop: str = Depends(require_proxy_shop),
    admin_client: ShopifyAdminClient = Depends(get_admin_client),
):
    payload = await _read_payload(request, UploadStartRequest)
    if payload is None or not payload.filename or not payload.mime or not payload.size:
        return _error(status.HTTP_400_BAD_REQUEST, "missing_params")

    try:
        target = await admin_client.create_staged_upload(
            shop_domain=shop,
            filename=payload.filename,
            mime_type=payload.mime,
            file_size=payload.size,
        )
    except ShopifyAdminError as exc:
        return _upstream_error(exc, shop=shop, operation="upload_start")

    if not target or not target.get("url") or not target.get("resourceUrl"):
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "staged_failed")

    form_data = {
        str(parameter.get("name")): str(parameter.get("value"))
        for parameter in target.get("parameters") or []
        if isinstance(parameter, dict) and parameter.get("name")
    }
    return UploadStartResponse(
        method="POST",
        uploadUrl=target["url"],
        formData=form_data,
        token=target["resourceUrl"],
    )


@router.post("/upload/complete", response_model=UploadCompleteResponse)
async def complete_upload(
    request: Request,
    shop: str = Depends(require_proxy_shop),
    admin_client: ShopifyAdminClient = Depends(get_admin_client),
):
    payload = await _read_payload(request, UploadCompleteRequest)
    if payload is None or not payload.token or not payload.filename:
        return _error(status.HTTP_400_BAD_REQUEST, "missing_params")

    try:
        url = await admin_client.create_file(
            shop_domain=shop,
            resource_url=payload.token,
            filename=payload.filename,
        )
    except ShopifyAdminError as exc:
        return _upstream_error(exc, shop=shop, operation="upload_complete")

    if not url:
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "file_create_failed")
    return UploadCompleteResponse(url=url)
