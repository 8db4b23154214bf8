from __future__ import annotations

import time
from decimal import Decimal
from typing import Any, Callable
from uuid import UUID

import structlog
from fastapi import FastAPI, Header, Query, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from returns.result import Failure, Result, Success

from supplier_orders.core.domain.model.errors import (
    DownstreamRejected,
    DownstreamUnavailable,
    DuplicateRecord,
    Forbidden,
    IdempotencyKeyConflict,
    InvalidStateTransition,
    NotFound,
    OrderError,
    PersistenceError,
    Unauthorized,
    ValidationError,
)
from supplier_orders.core.domain.model.order import Order, OrderId
from supplier_orders.core.domain.model.partner import Partner
from supplier_orders.core.ports.inbound.get_order import GetOrderQuery, GetOrderUseCase
from supplier_orders.core.ports.inbound.list_orders import (
    ListOrdersQuery,
    ListOrdersUseCase,
)
from supplier_orders.core.ports.inbound.manage_order import ManageOrderUseCase
from supplier_orders.core.ports.inbound.submit_cart import (
    CartLine,
    CartTotals,
    CustomerInfo,
    ShippingInfo,
    SubmitCartCommand,
    SubmitCartUseCase,
)
from supplier_orders.core.ports.inbound.sync_downstream import SyncDownstreamUseCase
from supplier_orders.core.ports.outbound.partners import PartnerRepository

logger = structlog.get_logger(__name__)

# ---- HTTP DTOs (adapter layer) ---------------------------------------------


class CartItemIn(BaseModel):
    sku: str = Field(min_length=1, examples=["SKU-1"])
    title: str = Field(min_length=1, examples=["Ceramic mug"])
    price: Decimal = Field(ge=0, examples=["12.50"])
    quantity: int = Field(ge=1, examples=[2])
    product_url: str | None = None


class CustomerIn(BaseModel):
    name: str = Field(min_length=1, examples=["Ana Souza"])
    phone: str | None = None


class ShippingIn(BaseModel):
    street: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str | None = None
    postal_code: str = Field(min_length=1)
    country: str = Field(min_length=1)


class TotalsIn(BaseModel):
    subtotal: Decimal = Field(ge=0)
    tax: Decimal = Field(default=Decimal("0"), ge=0)
    shipping: Decimal = Field(default=Decimal("0"), ge=0)
    total: Decimal = Field(ge=0)


class CartSubmitRequest(BaseModel):
    partner_order_id: str = Field(min_length=1, examples=["PO-1001"])
    items: list[CartItemIn] = Field(min_length=1)
    customer: CustomerIn
    shipping: ShippingIn
    totals: TotalsIn
    payment_status: str | None = None
    payment_method: str | None = None


class CartSubmitResponse(BaseModel):
    supplier_order_id: str
    status: str
    provisional_order_id: int | None = None
    finalized_order_id: int | None = None


class RejectRequest(BaseModel):
    reason: str = Field(min_length=1)


class ShipRequest(BaseModel):
    carrier: str = Field(min_length=1)
    tracking_number: str = Field(min_length=1)
    tracking_url: str | None = None


class CancelRequest(BaseModel):
    reason: str | None = None


class OrderItemOut(BaseModel):
    sku: str
    title: str
    price: str
    quantity: int
    product_url: str | None = None
    is_supplier_item: bool


class OrderEventOut(BaseModel):
    event_type: str
    payload: dict[str, Any]
    created_at: str


class OrderOut(BaseModel):
    id: str
    partner_order_id: str
    status: str
    customer_name: str
    customer_phone: str | None = None
    shipping_address: dict[str, str]
    cart_total: str
    payment_status: str | None = None
    payment_method: str | None = None
    rejection_reason: str | None = None
    tracking_carrier: str | None = None
    tracking_number: str | None = None
    tracking_url: str | None = None
    provisional_order_id: int | None = None
    finalized_order_id: int | None = None
    created_at: str
    updated_at: str


class OrderDetailsResponse(OrderOut):
    items: list[OrderItemOut]
    events: list[OrderEventOut]


class OrderListResponse(BaseModel):
    orders: list[OrderOut]
    limit: int
    offset: int


class ErrorResponse(BaseModel):
    type: str
    message: str
    details: Any | None = None


# ---- Mapping helpers -------------------------------------------------------


def _map_error_to_http(err: OrderError) -> tuple[int, ErrorResponse]:
    if isinstance(err, (ValidationError, InvalidStateTransition)):
        status = 400
    elif isinstance(err, Unauthorized):
        status = 401
    elif isinstance(err, Forbidden):
        status = 403
    elif isinstance(err, NotFound):
        status = 404
    elif isinstance(err, (IdempotencyKeyConflict, DuplicateRecord)):
        status = 409
    elif isinstance(err, DownstreamRejected):
        status = 422
    elif isinstance(err, DownstreamUnavailable):
        status = 502
    elif isinstance(err, PersistenceError):
        status = 500
    else:
        status = 500

    details: Any = None
    if isinstance(err, InvalidStateTransition):
        details = {"from": err.from_status, "to": err.to_status}
    elif isinstance(err, DownstreamRejected):
        details = list(err.user_errors)
    elif isinstance(err, DuplicateRecord):
        details = {"constraint": err.constraint}
    return status, ErrorResponse(type=type(err).__name__, message=err.message, details=details)


def _error_response(err: OrderError) -> JSONResponse:
    status, body = _map_error_to_http(err)
    return JSONResponse(status_code=status, content=body.model_dump())


def _order_out(order: Order) -> dict[str, Any]:
    return dict(
        id=str(order.order_id),
        partner_order_id=order.partner_order_id,
        status=order.status.value,
        customer_name=order.customer_name,
        customer_phone=order.customer_phone,
        shipping_address=dict(order.shipping_address),
        cart_total=str(order.cart_total),
        payment_status=order.payment_status,
        payment_method=order.payment_method,
        rejection_reason=order.rejection_reason,
        tracking_carrier=order.tracking_carrier,
        tracking_number=order.tracking_number,
        tracking_url=order.tracking_url,
        provisional_order_id=order.downstream_provisional_id,
        finalized_order_id=order.downstream_finalized_id,
        created_at=order.created_at.isoformat(),
        updated_at=order.updated_at.isoformat(),
    )


def _to_command(
    req: CartSubmitRequest, partner: Partner, idempotency_key: str | None
) -> SubmitCartCommand:
    return SubmitCartCommand(
        partner_id=partner.partner_id,
        partner_order_id=req.partner_order_id,
        items=tuple(
            CartLine(
                sku=it.sku,
                title=it.title,
                price=it.price,
                quantity=it.quantity,
                product_url=it.product_url,
            )
            for it in req.items
        ),
        customer=CustomerInfo(name=req.customer.name, phone=req.customer.phone),
        shipping=ShippingInfo(
            street=req.shipping.street,
            city=req.shipping.city,
            state=req.shipping.state,
            postal_code=req.shipping.postal_code,
            country=req.shipping.country,
        ),
        totals=CartTotals(
            subtotal=req.totals.subtotal,
            tax=req.totals.tax,
            shipping=req.totals.shipping,
            total=req.totals.total,
        ),
        payment_status=req.payment_status,
        payment_method=req.payment_method,
        idempotency_key=idempotency_key,
        request_body=req.model_dump(mode="json"),
    )


def _parse_order_id(raw: str) -> Result[OrderId, OrderError]:
    try:
        return Success(OrderId(UUID(raw)))
    except ValueError:
        return Failure(ValidationError(message="invalid order ID"))


# ---- App factory -----------------------------------------------------------


def create_app(
    submit_cart_uc: SubmitCartUseCase,
    manage_order_uc: ManageOrderUseCase,
    sync_downstream_uc: SyncDownstreamUseCase,
    get_order_uc: GetOrderUseCase,
    list_orders_uc: ListOrdersUseCase,
    partners: PartnerRepository,
) -> FastAPI:
    app = FastAPI(title="supplier_orders")

    def authenticate(api_key: str | None) -> Result[Partner, OrderError]:
        if not api_key:
            return Failure(Unauthorized(message="missing api key"))
        return partners.authenticate(api_key)

    def admin_action(
        api_key: str | None,
        order_id: str,
        action: Callable[[OrderId], Result[Order, OrderError]],
    ) -> Any:
        result = authenticate(api_key).bind(lambda _: _parse_order_id(order_id)).bind(action)
        if isinstance(result, Success):
            return OrderOut(**_order_out(result.unwrap()))
        return _error_response(result.failure())

    # --- middleware / exception handlers --------------------------------------

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "HTTP request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return response

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        _: Request, exc: RequestValidationError
    ) -> JSONResponse:
        body = ErrorResponse(
            type="RequestValidationError",
            message="invalid request",
            details=jsonable_encoder(exc.errors()),
        )
        return JSONResponse(status_code=400, content=body.model_dump())

    @app.exception_handler(Exception)
    async def handle_unexpected(_: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error", error_type=type(exc).__name__)
        body = ErrorResponse(type=type(exc).__name__, message="internal server error")
        return JSONResponse(status_code=500, content=body.model_dump())

    # --- routes --------------------------------------------------------------

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post(
        "/v1/carts/submit",
        response_model=CartSubmitResponse,
        responses={
            204: {"description": "cart has no supplier items"},
            400: {"model": ErrorResponse},
            401: {"model": ErrorResponse},
            409: {"model": ErrorResponse},
            500: {"model": ErrorResponse},
        },
    )
    def submit_cart(
        req: CartSubmitRequest,
        x_api_key: str | None = Header(None, alias="X-API-Key"),
        idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
    ) -> Any:
        result = authenticate(x_api_key).bind(
            lambda partner: submit_cart_uc.submit(_to_command(req, partner, idempotency_key))
        )
        if isinstance(result, Failure):
            return _error_response(result.failure())

        receipt = result.unwrap()
        if receipt.order is None:
            return Response(status_code=204)
        order = receipt.order
        return CartSubmitResponse(
            supplier_order_id=str(order.order_id),
            status=order.status.value,
            provisional_order_id=order.downstream_provisional_id,
            finalized_order_id=order.downstream_finalized_id,
        )

    @app.get(
        "/v1/orders/{order_id}",
        response_model=OrderDetailsResponse,
        responses={
            400: {"model": ErrorResponse},
            401: {"model": ErrorResponse},
            403: {"model": ErrorResponse},
            404: {"model": ErrorResponse},
        },
    )
    def get_order(
        order_id: str,
        x_api_key: str | None = Header(None, alias="X-API-Key"),
    ) -> Any:
        result = authenticate(x_api_key).bind(
            lambda partner: get_order_uc.get_order(
                GetOrderQuery(order_id=order_id, partner_id=partner.partner_id)
            )
        )
        if isinstance(result, Failure):
            return _error_response(result.failure())

        view = result.unwrap()
        return OrderDetailsResponse(
            **_order_out(view.order),
            items=[
                OrderItemOut(
                    sku=it.sku,
                    title=it.title,
                    price=str(it.unit_price),
                    quantity=it.quantity,
                    product_url=it.product_url,
                    is_supplier_item=it.is_supplier_item,
                )
                for it in view.items
            ],
            events=[
                OrderEventOut(
                    event_type=ev.event_type,
                    payload=jsonable_encoder(ev.payload),
                    created_at=ev.created_at.isoformat(),
                )
                for ev in view.events
            ],
        )

    @app.post("/v1/admin/orders/{order_id}/confirm", response_model=OrderOut)
    def confirm_order(
        order_id: str, x_api_key: str | None = Header(None, alias="X-API-Key")
    ) -> Any:
        return admin_action(x_api_key, order_id, manage_order_uc.confirm)

    @app.post("/v1/admin/orders/{order_id}/reject", response_model=OrderOut)
    def reject_order(
        order_id: str,
        req: RejectRequest,
        x_api_key: str | None = Header(None, alias="X-API-Key"),
    ) -> Any:
        return admin_action(
            x_api_key, order_id, lambda oid: manage_order_uc.reject(oid, req.reason)
        )

    @app.post("/v1/admin/orders/{order_id}/ship", response_model=OrderOut)
    def ship_order(
        order_id: str,
        req: ShipRequest,
        x_api_key: str | None = Header(None, alias="X-API-Key"),
    ) -> Any:
        return admin_action(
            x_api_key,
            order_id,
            lambda oid: manage_order_uc.ship(
                oid, req.carrier, req.tracking_number, req.tracking_url
            ),
        )

    @app.post("/v1/admin/orders/{order_id}/deliver", response_model=OrderOut)
    def deliver_order(
        order_id: str, x_api_key: str | None = Header(None, alias="X-API-Key")
    ) -> Any:
        return admin_action(x_api_key, order_id, manage_order_uc.deliver)

    @app.post("/v1/admin/orders/{order_id}/cancel", response_model=OrderOut)
    def cancel_order(
        order_id: str,
        req: CancelRequest | None = None,
        x_api_key: str | None = Header(None, alias="X-API-Key"),
    ) -> Any:
        reason = req.reason if req is not None else None
        return admin_action(
            x_api_key, order_id, lambda oid: manage_order_uc.cancel(oid, reason)
        )

    @app.post("/v1/admin/orders/{order_id}/sync-downstream", response_model=OrderOut)
    def sync_downstream(
        order_id: str, x_api_key: str | None = Header(None, alias="X-API-Key")
    ) -> Any:
        return admin_action(x_api_key, order_id, sync_downstream_uc.sync)

    @app.get(
        "/v1/admin/orders",
        response_model=OrderListResponse,
        responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
    )
    def list_orders(
        status: str | None = Query(None),
        limit: int = Query(50, ge=1, le=100),
        offset: int = Query(0, ge=0),
        x_api_key: str | None = Header(None, alias="X-API-Key"),
    ) -> Any:
        result = authenticate(x_api_key).bind(
            lambda partner: list_orders_uc.list_orders(
                ListOrdersQuery(
                    partner_id=partner.partner_id,
                    status=status or None,
                    limit=limit,
                    offset=offset,
                )
            )
        )
        if isinstance(result, Failure):
            return _error_response(result.failure())
        return OrderListResponse(
            orders=[OrderOut(**_order_out(o)) for o in result.unwrap()],
            limit=limit,
            offset=offset,
        )

    return app
