from fastapi import APIRouter

from app.schemas.category import CategoryItem
from app.services.categories import CATEGORIES

router = APIRouter()


@router.get("", response_model=list[CategoryItem])
def list_categories():
    """Public: primary categories with their subcategories, in display order."""
    return [CategoryItem(name=name, sub_categories=list(subs)) for name, subs in CATEGORIES.items()]
