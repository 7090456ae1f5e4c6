from pydantic import BaseModel


class CategoryItem(BaseModel):
    name: str
    sub_categories: list[str] = []
