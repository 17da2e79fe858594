"""API routes for the pay-for-order flow and subscription purchase limits."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from fastapi.responses import RedirectResponse

from ..checkout import PayForOrderRequest, Redirect
from ..limits import PurchaseLimitError
from ..schemas.checkout import (
    CartValidationRequest,
    CartValidationResponse,
    LoginRedirectResponse,
    PayForOrderResponse,
    PurchasabilityResponse,
)
from ..services import checkout as checkout_service
from ..services.checkout import StorefrontSession


def _get_session(request: Request) -> StorefrontSession:
    cookie_name = checkout_service.get_store_config().session_cookie_name
    return checkout_service.get_session_registry().get_or_create(request.cookies.get(cookie_name))


def _remember_session(response: Response, session: StorefrontSession) -> None:
    cookie_name = checkout_service.get_store_config().session_cookie_name
    response.set_cookie(cookie_name, session.token, httponly=True)


router = APIRouter(tags=["checkout"])


@router.get("/checkout/order-pay/{order_id}", response_model=PayForOrderResponse)
def pay_for_order(
    order_id: int,
    response: Response,
    key: Optional[str] = Query(None),
    pay_for_order: Optional[str] = Query(None),
    *,
    session: StorefrontSession = Depends(_get_session),
):
    builder = checkout_service.build_cart_builder(session)

    outcome = builder.maybe_setup_cart(
        PayForOrderRequest(order_id=order_id, order_key=key, pay_for_order=pay_for_order is not None)
    )
    if isinstance(outcome, Redirect):
        notices = checkout_service.build_notice_surface(session)
        for notice in outcome.notices:
            notices.show_notice(notice.kind, notice.message)
        redirect = RedirectResponse(url=outcome.location, status_code=status.HTTP_302_FOUND)
        _remember_session(redirect, session)
        return redirect

    _remember_session(response, session)
    return PayForOrderResponse(order_id=order_id, engaged=False)


@router.get("/api/products/{product_id}/purchasable", response_model=PurchasabilityResponse)
def get_purchasability(
    product_id: int,
    *,
    session: StorefrontSession = Depends(_get_session),
) -> PurchasabilityResponse:
    product = checkout_service.get_repository().find_product_by_id(product_id)
    if product is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")

    evaluator = checkout_service.build_limit_evaluator(session)
    purchasable = evaluator.is_purchasable(
        None,
        product,
        order_awaiting_payment=checkout_service.get_order_awaiting_payment(session),
    )
    return PurchasabilityResponse(
        product_id=product.product_id,
        limitation=evaluator.get_product_limitation(product).value,
        purchasable=purchasable,
    )


@router.post("/api/cart/validate", response_model=CartValidationResponse)
def validate_cart_item(
    payload: CartValidationRequest,
    *,
    session: StorefrontSession = Depends(_get_session),
) -> CartValidationResponse:
    product = checkout_service.get_repository().find_product_by_id(payload.product_id)
    if product is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")

    evaluator = checkout_service.build_limit_evaluator(session)
    if evaluator.order_awaiting_payment_for_product(
        checkout_service.get_order_awaiting_payment(session), product.product_id
    ):
        return CartValidationResponse(product_id=product.product_id, allowed=True)

    try:
        evaluator.assert_purchase_allowed(None, product)
    except PurchaseLimitError as exc:
        raise exc.to_http_exception() from exc
    return CartValidationResponse(product_id=product.product_id, allowed=True)


@router.get("/my-account/login-redirect", response_model=LoginRedirectResponse)
def resolve_login_redirect(
    redirect: str = Query("/my-account/"),
    wcs_redirect: Optional[str] = Query(None),
    wcs_redirect_id: Optional[str] = Query(None),
    *,
    session: StorefrontSession = Depends(_get_session),
) -> LoginRedirectResponse:
    builder = checkout_service.build_cart_builder(session)

    query = {}
    if wcs_redirect is not None:
        query["wcs_redirect"] = wcs_redirect
    if wcs_redirect_id is not None:
        query["wcs_redirect_id"] = wcs_redirect_id

    location = builder.redirect_after_login(redirect, builder.identity.current_customer_id(), query)
    order_id = int(wcs_redirect_id) if wcs_redirect_id and wcs_redirect_id.isdigit() else None
    return LoginRedirectResponse(location=location, order_id=order_id)
