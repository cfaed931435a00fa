from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

ImportScope = Literal["global", "parent"]


class CategoryBase(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    parent_category_id: UUID | None = None


class CategoryPayload(CategoryBase):
    """Write representation: ``id`` must be absent on create and present on update."""

    id: UUID | None = None


class CategoryRead(CategoryBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID


class PaginationMeta(BaseModel):
    total_items: int
    total_pages: int
    page: int
    limit: int


class CategoryPage(BaseModel):
    items: list[CategoryRead]
    meta: PaginationMeta


class CategoryImportRequest(BaseModel):
    path: str = Field(min_length=1)
    scope: ImportScope | None = None
    encoding: str | None = None


class ImportSummary(BaseModel):
    lines: int = 0
    created: int = 0
    reused: int = 0
    skipped_fields: int = 0
