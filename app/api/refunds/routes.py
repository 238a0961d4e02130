from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Path, status

from app.api.refunds.dependencies import get_current_user, get_refund_workflow, require_admin
from app.api.refunds.helpers import to_admin_request_item, to_request_item, to_warning_items
from app.api.refunds.schemas import (
    QueueStatsResponse,
    RefundablePaymentItem,
    RefundRequestCreate,
    RefundRequestResult,
    ResolveRequestBody,
    ResolveRequestResult,
)
from app.api.refunds.workflow import RefundWorkflow
from app.core.common.constants import Roles
from app.core.messages import RefundMessage
from app.utils.response import ApiResponse, MetaData, success_response

refunds_router = APIRouter()


@refunds_router.post(
    "",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
)
async def request_refund(
    payload: RefundRequestCreate,
    user_id: uuid.UUID = Depends(get_current_user),
    workflow: RefundWorkflow = Depends(get_refund_workflow),
):
    outcome = await workflow.request_refund(user_id, payload.payment_reference, payload.reason)
    result = RefundRequestResult(
        success=outcome.success,
        autoRefunded=outcome.auto_refunded,
        message=outcome.message,
        requestId=outcome.request.id,
        status=outcome.request.status,
        warnings=to_warning_items(outcome.warnings),
    )
    return success_response(
        data=result.model_dump(by_alias=True, mode="json"),
        message=outcome.message,
        status_code=status.HTTP_201_CREATED,
    )


@refunds_router.get("/me", response_model=ApiResponse)
async def list_own_requests(
    user_id: uuid.UUID = Depends(get_current_user),
    workflow: RefundWorkflow = Depends(get_refund_workflow),
):
    records = await workflow.list_own_requests(user_id)
    return success_response(
        data=[to_request_item(r).model_dump(by_alias=True, mode="json") for r in records],
        message=RefundMessage.REQUESTS_LOADED,
        meta=MetaData(total=len(records)),
    )


@refunds_router.get("/payments", response_model=ApiResponse)
async def list_refundable_payments(
    user_id: uuid.UUID = Depends(get_current_user),
    workflow: RefundWorkflow = Depends(get_refund_workflow),
):
    payments = await workflow.list_refundable_payments(user_id)
    items = [
        RefundablePaymentItem(
            id=p.reference,
            amount=p.amount,
            currency=p.currency,
            paymentDate=p.payment_date,
            daysSincePayment=p.days_since_payment,
            isWithinPeriod=p.is_within_period,
            refundStatus=p.refund_status,
            description=p.description,
        ).model_dump(by_alias=True, mode="json")
        for p in payments
    ]
    return success_response(
        data=items,
        message=RefundMessage.PAYMENTS_LOADED,
        meta=MetaData(total=len(items)),
    )


@refunds_router.get("/admin/requests", response_model=ApiResponse)
async def list_requests(
    role: Roles = Depends(require_admin),
    workflow: RefundWorkflow = Depends(get_refund_workflow),
):
    annotated = await workflow.list_requests(role)
    return success_response(
        data=[
            to_admin_request_item(a.request, a.display_name, a.email).model_dump(
                by_alias=True, mode="json"
            )
            for a in annotated
        ],
        message=RefundMessage.REQUESTS_LOADED,
        meta=MetaData(total=len(annotated)),
    )


@refunds_router.get("/admin/stats", response_model=ApiResponse)
async def queue_stats(
    role: Roles = Depends(require_admin),
    workflow: RefundWorkflow = Depends(get_refund_workflow),
):
    stats = await workflow.queue_stats(role)
    result = QueueStatsResponse(
        pending=stats.pending,
        refunded=stats.refunded,
        rejected=stats.rejected,
        refundedTotals=stats.refunded_totals,
    )
    return success_response(
        data=result.model_dump(by_alias=True, mode="json"),
        message=RefundMessage.STATS_LOADED,
    )


@refunds_router.post("/admin/requests/{request_id}/resolve", response_model=ApiResponse)
async def resolve_request(
    payload: ResolveRequestBody,
    request_id: uuid.UUID = Path(...),
    user_id: uuid.UUID = Depends(get_current_user),
    role: Roles = Depends(require_admin),
    workflow: RefundWorkflow = Depends(get_refund_workflow),
):
    outcome = await workflow.resolve_request(
        caller_id=user_id,
        caller_role=role,
        request_id=request_id,
        approve=payload.approve,
        admin_notes=payload.admin_notes,
    )
    result = ResolveRequestResult(
        requestId=outcome.request.id,
        status=outcome.request.status,
        warnings=to_warning_items(outcome.warnings),
    )
    return success_response(
        data=result.model_dump(by_alias=True, mode="json"),
        message=RefundMessage.APPROVED if payload.approve else RefundMessage.REJECTED,
    )
