from __future__ import annotations

from fastapi import APIRouter, Depends

from ...ai_service import AIService
from ...schemas import DiningContext, DiningSuggestions
from ..deps import get_ai

router = APIRouter(prefix="/ai", tags=["ai"])


@router.post("/dining-suggestions", response_model=DiningSuggestions)
async def dining_suggestions(context: DiningContext, ai: AIService = Depends(get_ai)):
    return {"suggestions": await ai.generate_dining_suggestions(context)}
