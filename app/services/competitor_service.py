"""
trackd - Competitor Service

Business logic for competitor tracking.
"""

import uuid
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.competitor import Competitor
from app.schemas.competitor import CompetitorCreateRequest, CompetitorUpdateRequest
from app.utils.error_handling import NotFoundException


class CompetitorService:
    """Service for competitor operations."""
    
    def __init__(self, db: AsyncSession):
        self.db = db
    
    async def get_competitors(self, user_id: uuid.UUID) -> List[Competitor]:
        result = await self.db.execute(
            select(Competitor)
            .where(Competitor.user_id == user_id)
            .order_by(Competitor.updated_at.desc(), Competitor.id)
        )
        return list(result.scalars().all())
    
    async def get_competitor(self, user_id: uuid.UUID, competitor_id: uuid.UUID) -> Competitor:
        result = await self.db.execute(
            select(Competitor).where(
                Competitor.id == competitor_id,
                Competitor.user_id == user_id,
            )
        )
        competitor = result.scalar_one_or_none()
        if competitor is None:
            raise NotFoundException("Competitor", competitor_id)
        return competitor
    
    async def create_competitor(self, user_id: uuid.UUID, request: CompetitorCreateRequest) -> Competitor:
        competitor = Competitor(user_id=user_id, **request.model_dump())
        
        self.db.add(competitor)
        await self.db.commit()
        await self.db.refresh(competitor)
        
        return competitor
    
    async def update_competitor(
        self,
        user_id: uuid.UUID,
        competitor_id: uuid.UUID,
        request: CompetitorUpdateRequest,
    ) -> Competitor:
        competitor = await self.get_competitor(user_id, competitor_id)
        
        for key, value in request.model_dump(exclude_unset=True).items():
            if value is None and key in ("name", "is_active", "services", "strengths", "weaknesses"):
                continue
            setattr(competitor, key, value)
        
        await self.db.commit()
        await self.db.refresh(competitor)
        
        return competitor
    
    async def delete_competitor(self, user_id: uuid.UUID, competitor_id: uuid.UUID) -> None:
        competitor = await self.get_competitor(user_id, competitor_id)
        await self.db.delete(competitor)
        await self.db.commit()
