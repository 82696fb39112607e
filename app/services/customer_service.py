"""
trackd - Customer Service

Business logic for customer management.
"""

import uuid
from typing import List

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.customer import Customer
from app.models.job import Job
from app.schemas.customer import CustomerCreateRequest, CustomerUpdateRequest
from app.services.analytics_service import AnalyticsService
from app.utils.error_handling import NotFoundException


NON_NULLABLE_FIELDS = ("name", "contact_preference", "satisfaction_score", "status", "preferred_services")


class CustomerService:
    """Service for customer operations."""
    
    def __init__(self, db: AsyncSession):
        self.db = db
    
    async def get_customers(self, user_id: uuid.UUID) -> List[Customer]:
        """Get all customers for a user, most recently updated first."""
        result = await self.db.execute(
            select(Customer)
            .where(Customer.user_id == user_id)
            .order_by(Customer.updated_at.desc(), Customer.id)
        )
        return list(result.scalars().all())
    
    async def get_customer(self, user_id: uuid.UUID, customer_id: uuid.UUID) -> Customer:
        """Get a customer owned by the user or raise 404."""
        result = await self.db.execute(
            select(Customer)
            .where(Customer.id == customer_id)
            .where(Customer.user_id == user_id)
        )
        customer = result.scalar_one_or_none()
        if customer is None:
            raise NotFoundException("Customer", customer_id)
        return customer
    
    async def create_customer(self, user_id: uuid.UUID, request: CustomerCreateRequest) -> Customer:
        """Create a new customer."""
        customer = Customer(user_id=user_id, **request.model_dump())
        
        self.db.add(customer)
        await self.db.commit()
        await self.db.refresh(customer)
        
        return customer
    
    async def update_customer(
        self,
        user_id: uuid.UUID,
        customer_id: uuid.UUID,
        request: CustomerUpdateRequest,
    ) -> Customer:
        """Update contact details and status. Aggregates are not client-writable."""
        customer = await self.get_customer(user_id, customer_id)
        
        for key, value in request.model_dump(exclude_unset=True).items():
            if value is None and key in NON_NULLABLE_FIELDS:
                continue
            setattr(customer, key, value)
        
        await self.db.commit()
        await self.db.refresh(customer)
        
        return customer
    
    async def delete_customer(self, user_id: uuid.UUID, customer_id: uuid.UUID) -> None:
        """Delete a customer; its jobs keep their denormalised name but lose the link."""
        customer = await self.get_customer(user_id, customer_id)
        
        await self.db.execute(
            update(Job)
            .where(Job.user_id == user_id, Job.customer_id == customer_id)
            .values(customer_id=None)
        )
        await self.db.delete(customer)
        await self.db.commit()
    
    async def recompute_stats(self, user_id: uuid.UUID, customer_id: uuid.UUID) -> Customer:
        """Rebuild a customer's aggregate columns from its jobs."""
        await self.get_customer(user_id, customer_id)
        customer = await AnalyticsService(self.db).recompute_customer_stats(user_id, customer_id)
        await self.db.commit()
        await self.db.refresh(customer)
        return customer
