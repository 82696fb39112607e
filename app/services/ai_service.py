"""
trackd - AI Analysis Service

Competitor and pricing analysis plus insight generation through the OpenAI
chat completions API.

The model is asked for JSON but may wrap it in commentary or code fences,
so the first JSON value is cut out of the raw text before parsing. Any
failure (no key, API error, empty or unparsable reply) raises
OpenAIAPIException; no fallback analysis is ever fabricated.

Every call is recorded in ai_requests; successful rows count against the
user's monthly AI credits.
"""

import json
import logging
import time
from decimal import Decimal
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.ai_request import AIRequest, AIRequestType
from app.models.user import User
from app.schemas.ai import AnalysisResponse, CompetitorAnalysisRequest, PricingAnalysisRequest
from app.utils.currency import format_price
from app.utils.error_handling import OpenAIAPIException

logger = logging.getLogger(__name__)


TEMPERATURE = 0.7
ANALYSIS_MAX_TOKENS = 1500
INSIGHTS_MAX_TOKENS = 2000

INSIGHTS_SYSTEM_PROMPT = (
    "You are a business analyst providing actionable insights for trades businesses. "
    "Always respond with valid JSON arrays only."
)


# =============================================================================
# RESPONSE PARSING
# =============================================================================

def extract_json(content: Optional[str], opening: str = "{", closing: str = "}") -> Any:
    """
    Parse the JSON value embedded in a model reply.
    
    Code fences are stripped, then the text between the first ``opening``
    and the last ``closing`` bracket is parsed.
    
    Raises:
        ValueError: if no parsable JSON value is present
    """
    if not content or not content.strip():
        raise ValueError("Empty response")
    
    clean = content.strip().replace("```json", "").replace("```", "")
    start = clean.find(opening)
    end = clean.rfind(closing)
    if start != -1 and end > start:
        clean = clean[start:end + 1]
    
    return json.loads(clean)


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None and str(item).strip()]


def normalize_analysis(data: Any) -> AnalysisResponse:
    """Coerce a parsed reply to {analysis, keyInsights, recommendations}."""
    if not isinstance(data, dict) or not isinstance(data.get("analysis"), str):
        raise ValueError("Response is missing an analysis")
    
    return AnalysisResponse(
        analysis=data["analysis"],
        key_insights=_string_list(data.get("keyInsights", data.get("key_insights"))),
        recommendations=_string_list(data.get("recommendations")),
    )


def valid_insights(data: Any) -> List[Dict[str, Any]]:
    """Keep only generated insights carrying a title, an action and an impact."""
    if isinstance(data, dict):
        data = data.get("insights")
    if not isinstance(data, list):
        raise ValueError("Response is not an array")
    
    kept = []
    for item in data:
        if isinstance(item, dict) and item.get("title") and item.get("action") and item.get("impact"):
            kept.append(item)
        else:
            logger.warning(f"Skipping invalid insight: {item!r}")
    
    if not kept:
        raise ValueError("No valid insights in response")
    return kept


# =============================================================================
# PROMPTS
# =============================================================================

def competitor_analysis_prompt(request: CompetitorAnalysisRequest) -> str:
    return f"""
You are a business consultant specializing in trades and service businesses. Analyze the competitive landscape for a {request.business_type} business in {request.location}.

Business Details:
- Business Type: {request.business_type}
- Location: {request.location}
- Services Offered: {', '.join(request.services)}

Please provide:
1. A comprehensive analysis of the competitive landscape
2. 3-5 key insights about the market and competition
3. 3-5 actionable recommendations for competitive advantage

Focus on practical, actionable advice specific to trades businesses in the UK market. Consider factors like:
- Local market saturation
- Pricing strategies
- Service differentiation opportunities
- Marketing and customer acquisition
- Seasonal factors
- Digital presence importance

Respond in JSON format with:
{{
  "analysis": "detailed analysis paragraph",
  "keyInsights": ["insight1", "insight2", "insight3", ...],
  "recommendations": ["recommendation1", "recommendation2", "recommendation3", ...]
}}
"""


def pricing_analysis_prompt(request: PricingAnalysisRequest) -> str:
    return f"""
You are a pricing consultant specializing in trades and service businesses. Analyze the pricing strategy for a {request.business_type} business in {request.location}.

Business Details:
- Business Type: {request.business_type}
- Location: {request.location}
- Current Hourly Rate: {format_price(request.current_rate)}
- Services Offered: {', '.join(request.services)}

Please provide:
1. A comprehensive analysis of their current pricing relative to market rates
2. 3-5 key insights about pricing in this market
3. 3-5 actionable recommendations for pricing optimization

Focus on practical, actionable advice specific to trades businesses in the UK market. Consider factors like:
- Industry standard rates
- Regional pricing variations
- Service complexity and value
- Competition-based pricing
- Value-based pricing opportunities
- Premium service positioning

Respond in JSON format with:
{{
  "analysis": "detailed analysis paragraph",
  "keyInsights": ["insight1", "insight2", "insight3", ...],
  "recommendations": ["recommendation1", "recommendation2", "recommendation3", ...]
}}
"""


# =============================================================================
# SERVICE
# =============================================================================

class AIService:
    """Gateway to the language model."""
    
    def __init__(self, db: AsyncSession, client: Optional[AsyncOpenAI] = None):
        self.db = db
        self._client = client
        self.model = settings.openai_model
    
    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not settings.openai_api_key:
                raise OpenAIAPIException("OpenAI API key is not configured")
            self._client = AsyncOpenAI(
                api_key=settings.openai_api_key,
                timeout=settings.openai_timeout_seconds,
            )
        return self._client
    
    async def _record(
        self,
        user: User,
        request_type: AIRequestType,
        endpoint: str,
        prompt: str,
        max_tokens: int,
        started: float,
        content: Optional[str] = None,
        usage: Any = None,
        error: Optional[str] = None,
    ) -> None:
        tokens_input = getattr(usage, "prompt_tokens", 0) or 0
        tokens_output = getattr(usage, "completion_tokens", 0) or 0
        self.db.add(
            AIRequest(
                user_id=user.id,
                entitlement_tier=user.subscription_tier,
                request_type=request_type.value,
                endpoint=endpoint,
                model=self.model,
                tokens_input=tokens_input,
                tokens_output=tokens_output,
                tokens_total=tokens_input + tokens_output,
                response_time_ms=int((time.monotonic() - started) * 1000),
                success=error is None,
                error_message=error,
                prompt_length=len(prompt),
                response_length=len(content) if content else None,
                temperature=Decimal(str(TEMPERATURE)),
                max_tokens=max_tokens,
            )
        )
        await self.db.commit()
    
    async def _complete(
        self,
        user: User,
        request_type: AIRequestType,
        endpoint: str,
        prompt: str,
        max_tokens: int,
        parse,
        system_prompt: Optional[str] = None,
    ) -> Any:
        """Run one completion, parse it with ``parse`` and record the call."""
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        
        started = time.monotonic()
        content = None
        usage = None
        try:
            client = self._get_client()
            response = await client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=TEMPERATURE,
                max_tokens=max_tokens,
            )
            usage = response.usage
            content = response.choices[0].message.content if response.choices else None
            if not content:
                raise ValueError("No response from OpenAI")
            result = parse(content)
        except (OpenAIError, ValueError) as e:
            logger.error(f"OpenAI {request_type.value} failed for user {user.id}: {e}")
            await self._record(user, request_type, endpoint, prompt, max_tokens, started, content, usage, str(e))
            raise OpenAIAPIException(str(e), original_error=e)
        except OpenAIAPIException as e:
            await self._record(user, request_type, endpoint, prompt, max_tokens, started, error=e.message)
            raise
        
        await self._record(user, request_type, endpoint, prompt, max_tokens, started, content, usage)
        logger.info(f"OpenAI {request_type.value} completed for user {user.id}")
        return result
    
    async def analyze_competitors(self, user: User, request: CompetitorAnalysisRequest) -> AnalysisResponse:
        return await self._complete(
            user,
            AIRequestType.COMPETITOR_ANALYSIS,
            "/api/ai/competitor-analysis",
            competitor_analysis_prompt(request),
            ANALYSIS_MAX_TOKENS,
            lambda content: normalize_analysis(extract_json(content)),
        )
    
    async def analyze_pricing(self, user: User, request: PricingAnalysisRequest) -> AnalysisResponse:
        return await self._complete(
            user,
            AIRequestType.PRICING_ANALYSIS,
            "/api/ai/pricing-analysis",
            pricing_analysis_prompt(request),
            ANALYSIS_MAX_TOKENS,
            lambda content: normalize_analysis(extract_json(content)),
        )
    
    async def generate_insights(self, user: User, prompt: str) -> List[Dict[str, Any]]:
        """Ask for a JSON array of insights and return the valid entries."""
        return await self._complete(
            user,
            AIRequestType.INSIGHT_GENERATION,
            "/api/insights/regenerate",
            prompt,
            INSIGHTS_MAX_TOKENS,
            lambda content: valid_insights(extract_json(content, "[", "]")),
            system_prompt=INSIGHTS_SYSTEM_PROMPT,
        )
