"""
trackd - Customers Router

API endpoints for customer management.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_user
from app.models.user import User
from app.schemas.base import MessageResponse
from app.schemas.customer import (
    CustomerCreateRequest,
    CustomerResponse,
    CustomerUpdateRequest,
)
from app.services.customer_service import CustomerService


router = APIRouter()


@router.get(
    "",
    response_model=List[CustomerResponse],
    summary="List customers",
    description="Get all customers for the current user, most recently updated first.",
)
async def list_customers(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await CustomerService(db).get_customers(current_user.id)


@router.post(
    "",
    response_model=CustomerResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create customer",
)
async def create_customer(
    request: CustomerCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await CustomerService(db).create_customer(current_user.id, request)


@router.get(
    "/{customer_id}",
    response_model=CustomerResponse,
    summary="Get customer",
)
async def get_customer(
    customer_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await CustomerService(db).get_customer(current_user.id, customer_id)


@router.put(
    "/{customer_id}",
    response_model=CustomerResponse,
    summary="Update customer",
    description="Update contact details and status. Job aggregates are maintained by the server.",
)
async def update_customer(
    customer_id: UUID,
    request: CustomerUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await CustomerService(db).update_customer(current_user.id, customer_id, request)


@router.delete(
    "/{customer_id}",
    response_model=MessageResponse,
    summary="Delete customer",
    description="Delete a customer. Its jobs are kept and unlinked.",
)
async def delete_customer(
    customer_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    await CustomerService(db).delete_customer(current_user.id, customer_id)
    return MessageResponse(message="Customer deleted successfully")


@router.post(
    "/{customer_id}/recompute",
    response_model=CustomerResponse,
    summary="Recompute customer statistics",
    description="Rebuild totals, average job value and job dates from the customer's jobs.",
)
async def recompute_customer(
    customer_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await CustomerService(db).recompute_stats(current_user.id, customer_id)
