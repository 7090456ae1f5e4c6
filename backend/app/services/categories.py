"""Marketplace category registry: primary category -> ordered subcategories (read-only)."""

from types import MappingProxyType
from typing import List, Mapping, Optional, Tuple

CATEGORIES: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "Mobile Phones": ("Android", "iPhone", "Samsung", "Huawei", "Xiaomi", "Oppo", "Vivo", "Other Brands"),
    "Laptops & PCs": (
        "Gaming Laptops", "Business Laptops", "Desktop PCs", "MacBooks", "Chromebooks", "Other Computers",
    ),
    "Headphones & Audio": (
        "JBL", "Sony", "Bose", "Apple AirPods", "Samsung Buds", "Gaming Headsets", "Speakers",
        "Other Audio Devices",
    ),
    "Women's Clothing": (
        "Dresses", "Tops & Blouses", "Pants & Jeans", "Skirts", "Outerwear", "Activewear", "Underwear", "other",
    ),
    "Men's Clothing": (
        "Shirts", "T-Shirts", "Pants & Jeans", "Shorts", "Suits", "Activewear", "Underwear", "other",
    ),
    "Home & Kitchen": ("Furniture", "Appliances", "Decor", "Kitchen Tools", "Bedding", "Storage", "other"),
    "Sports & Fitness": (
        "Exercise Equipment", "Sportswear", "Outdoor Gear", "Supplements", "Yoga & Pilates", "other",
    ),
})


def primary_categories() -> List[str]:
    return list(CATEGORIES)


def sub_categories(primary: Optional[str]) -> List[str]:
    """Subcategories registered under primary; empty for an unknown or missing primary."""
    return list(CATEGORIES.get(primary or "", ()))


def is_primary_category(primary: Optional[str]) -> bool:
    return bool(primary) and primary in CATEGORIES


def belongs_to(primary: Optional[str], sub: Optional[str]) -> bool:
    return bool(sub) and sub in CATEGORIES.get(primary or "", ())
