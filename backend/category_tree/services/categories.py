import logging
import uuid
from typing import Any

from category_tree.core.errors import CategoryNotFoundError, CategoryValidationError
from category_tree.models.category import Category
from category_tree.repositories.categories import SORT_OPTIONS, UNSCOPED, CategoryStore, StoreFactory
from category_tree.schemas.category import CategoryPage, CategoryPayload, CategoryRead, PaginationMeta

logger = logging.getLogger(__name__)


def to_read(category: Category) -> CategoryRead:
    return CategoryRead(id=category.id, name=category.name, parent_category_id=category.parent_id)


async def _ensure_no_cycle(store: CategoryStore, category_id: uuid.UUID, parent_id: uuid.UUID) -> None:
    seen: set[uuid.UUID] = set()
    current: uuid.UUID | None = parent_id
    while current is not None and current not in seen:
        if current == category_id:
            raise CategoryValidationError(
                f"Category {category_id} cannot be placed under itself or one of its descendants", code="cycle"
            )
        seen.add(current)
        node = await store.find_by_id(current)
        current = node.parent_id if node is not None else None


class CategoryService:
    """Single entry point over the category store; every call runs in its own transaction."""

    def __init__(self, store_factory: StoreFactory, *, search_limit: int = 10, max_page_size: int = 100) -> None:
        self._store_factory = store_factory
        self.search_limit = search_limit
        self.max_page_size = max_page_size

    async def create(self, payload: CategoryPayload) -> CategoryRead:
        if payload.id is not None:
            raise CategoryValidationError("A new category cannot already have an ID", code="idexists")
        return await self.save(payload)

    async def update(self, payload: CategoryPayload) -> CategoryRead:
        if payload.id is None:
            raise CategoryValidationError("Invalid id", code="idnull")
        return await self.save(payload)

    async def save(self, payload: CategoryPayload) -> CategoryRead:
        """Insert when ``payload.id`` is unset, otherwise replace name and parent in place."""
        parent_id = payload.parent_category_id
        async with self._store_factory() as store:
            if parent_id is not None and await store.find_by_id(parent_id) is None:
                raise CategoryValidationError(f"Parent category {parent_id} does not exist", code="parentnotfound")
            if payload.id is None:
                category = await store.insert(Category(name=payload.name, parent_id=parent_id))
            else:
                if parent_id is not None:
                    await _ensure_no_cycle(store, payload.id, parent_id)
                category = await store.replace(payload.id, name=payload.name, parent_id=parent_id)
                if category is None:
                    raise CategoryNotFoundError(f"Category {payload.id} not found")
            result = to_read(category)
        logger.info(
            "category_saved",
            extra={"category_id": str(result.id), "is_new": payload.id is None},
        )
        return result

    async def find_all(self, *, page: int = 1, limit: int = 20, sort: str | None = None) -> CategoryPage:
        if sort is not None and sort not in SORT_OPTIONS:
            raise CategoryValidationError(f"Unsupported sort {sort!r}", code="sort")
        limit = max(1, min(int(limit), self.max_page_size))
        page = max(1, int(page))
        async with self._store_factory() as store:
            rows, total_items = await store.list_page(page=page, limit=limit, sort=sort)
            items = [to_read(row) for row in rows]
        total_pages = max(1, (total_items + limit - 1) // limit) if total_items else 1
        meta = PaginationMeta(total_items=total_items, total_pages=total_pages, page=page, limit=limit)
        return CategoryPage(items=items, meta=meta)

    async def find_one(self, category_id: uuid.UUID) -> CategoryRead | None:
        async with self._store_factory() as store:
            category = await store.find_by_id(category_id)
            return to_read(category) if category is not None else None

    async def delete(self, category_id: uuid.UUID) -> None:
        # Children are orphaned to root rather than deleted with their parent.
        async with self._store_factory() as store:
            detached = await store.detach_children(category_id)
            await store.delete_by_id(category_id)
        logger.info("category_deleted", extra={"category_id": str(category_id), "detached_children": detached})

    async def find_by_name(self, name: str, *, parent_id: Any = UNSCOPED) -> CategoryRead | None:
        async with self._store_factory() as store:
            category = await store.find_first_by_name(name, parent_id=parent_id)
            return to_read(category) if category is not None else None

    async def find_by_query(self, text: str) -> list[CategoryRead]:
        async with self._store_factory() as store:
            rows = await store.find_top_by_name_containing(text, limit=self.search_limit)
            return [to_read(row) for row in rows]

    async def find_children(self, category_id: uuid.UUID) -> list[CategoryRead]:
        async with self._store_factory() as store:
            rows = await store.find_children(category_id)
            return [to_read(row) for row in rows]
