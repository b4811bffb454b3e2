from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    error: str
    detail: str | None = None


class HealthResponse(BaseModel):
    ok: bool


class OrderLineItem(BaseModel):
    title: str | None = None
    productId: str | None = None
    variantId: str | None = None
    handle: str = ""
    quantity: int | None = None
    sku: str = ""
    available: bool = True


class OrderLookupResponse(BaseModel):
    orderId: int | str
    currency: str | None = None
    items: list[OrderLineItem] = Field(default_factory=list)


class StockVariant(BaseModel):
    id: str
    title: str | None = None
    available: bool | None = None


class StockResponse(BaseModel):
    variants: list[StockVariant] = Field(default_factory=list)


# Upload request fields are optional so missing ones map to ``missing_params``
# instead of a framework validation error.
class UploadStartRequest(BaseModel):
    filename: str | None = None
    mime: str | None = None
    size: int | str | None = None


class UploadStartResponse(BaseModel):
    method: str = "POST"
    uploadUrl: str
    formData: dict[str, str] = Field(default_factory=dict)
    token: str


class UploadCompleteRequest(BaseModel):
    token: str | None = None
    filename: str | None = None


class UploadCompleteResponse(BaseModel):
    url: str
