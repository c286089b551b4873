from fastapi import APIRouter, status

from receiptflow.categories.dependencies import SuggestionServiceDependency
from receiptflow.categories.schemas import (
    CandidateCategory,
    CategorySuggestionRequest,
    CategorySuggestionResponse,
)
from receiptflow.line_items.schemas import LineItem

router = APIRouter()


@router.post("/suggestions", response_model=CategorySuggestionResponse, status_code=status.HTTP_200_OK, summary="Suggest categories for a receipt")
async def suggest_categories(data: CategorySuggestionRequest, service: SuggestionServiceDependency):
    """
    Rank candidate categories for a receipt from the owner's recent history.
    Returns an empty list when there is no history to learn from.
    """
    line_items = [
        LineItem(
            description=item.description,
            suggested_category_id=item.suggested_category_id,
            category_confidence=item.category_confidence,
        )
        for item in data.line_items
    ]
    candidates = [CandidateCategory(id=category.id, name=category.name) for category in data.candidate_categories]

    suggestions = await service.suggest(data.owner_id, data.merchant_name, line_items, candidates)
    return CategorySuggestionResponse(suggestions=suggestions)
