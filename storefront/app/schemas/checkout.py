"""API schemas for checkout and purchase limit endpoints."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PayForOrderResponse(BaseModel):
    order_id: int = Field(alias="orderId")
    engaged: bool = False

    model_config = ConfigDict(populate_by_name=True)


class PurchasabilityResponse(BaseModel):
    product_id: int = Field(alias="productId")
    limitation: str
    purchasable: bool

    model_config = ConfigDict(populate_by_name=True)


class CartValidationRequest(BaseModel):
    product_id: int = Field(alias="productId")
    quantity: int = Field(default=1, ge=1)

    model_config = ConfigDict(populate_by_name=True)


class CartValidationResponse(BaseModel):
    product_id: int = Field(alias="productId")
    allowed: bool

    model_config = ConfigDict(populate_by_name=True)


class LoginRedirectResponse(BaseModel):
    location: str
    order_id: Optional[int] = Field(alias="orderId", default=None)

    model_config = ConfigDict(populate_by_name=True)
