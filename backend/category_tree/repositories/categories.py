from __future__ import annotations

import asyncio
import itertools
import uuid
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any, Final, Protocol

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from category_tree.core.errors import CategoryStorageError
from category_tree.models.category import Category, category_name_key


class _Unscoped:
    def __repr__(self) -> str:
        return "UNSCOPED"


# Passed as parent_id to name lookups that must ignore the parent entirely.
UNSCOPED: Final[Any] = _Unscoped()

SORT_OPTIONS: Final[frozenset[str]] = frozenset({"oldest", "newest", "name_asc", "name_desc"})


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class CategoryStore(Protocol):
    async def insert(self, category: Category) -> Category: ...

    async def replace(
        self, category_id: uuid.UUID, *, name: str, parent_id: uuid.UUID | None
    ) -> Category | None: ...

    async def find_by_id(self, category_id: uuid.UUID) -> Category | None: ...

    async def find_first_by_name(self, name: str, *, parent_id: Any = UNSCOPED) -> Category | None: ...

    async def find_top_by_name_containing(self, text: str, limit: int = 10) -> list[Category]: ...

    async def find_children(self, category_id: uuid.UUID) -> list[Category]: ...

    async def delete_by_id(self, category_id: uuid.UUID) -> None: ...

    async def detach_children(self, category_id: uuid.UUID) -> int: ...

    async def list_page(self, *, page: int, limit: int, sort: str | None = None) -> tuple[list[Category], int]: ...


StoreFactory = Callable[[], AbstractAsyncContextManager[CategoryStore]]


class SqlCategoryStore:
    """CategoryStore backed by an AsyncSession; the caller owns the transaction."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def insert(self, category: Category) -> Category:
        category.name_key = category_name_key(category.name)
        self.session.add(category)
        await self.session.flush()
        return category

    async def replace(
        self, category_id: uuid.UUID, *, name: str, parent_id: uuid.UUID | None
    ) -> Category | None:
        category = await self.session.get(Category, category_id)
        if category is None:
            return None
        category.name = name
        category.name_key = category_name_key(name)
        category.parent_id = parent_id
        await self.session.flush()
        return category

    async def find_by_id(self, category_id: uuid.UUID) -> Category | None:
        return await self.session.get(Category, category_id)

    async def find_first_by_name(self, name: str, *, parent_id: Any = UNSCOPED) -> Category | None:
        query = select(Category).where(Category.name_key == category_name_key(name))
        if parent_id is not UNSCOPED:
            if parent_id is None:
                query = query.where(Category.parent_id.is_(None))
            else:
                query = query.where(Category.parent_id == parent_id)
        query = query.order_by(Category.created_at.asc(), Category.id.asc()).limit(1)
        result = await self.session.execute(query)
        return result.scalars().first()

    async def find_top_by_name_containing(self, text: str, limit: int = 10) -> list[Category]:
        needle = f"%{_escape_like(category_name_key(text))}%"
        query = (
            select(Category)
            .where(Category.name_key.like(needle, escape="\\"))
            .order_by(Category.name_key.asc(), Category.id.asc())
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars())

    async def find_children(self, category_id: uuid.UUID) -> list[Category]:
        result = await self.session.execute(
            select(Category)
            .where(Category.parent_id == category_id)
            .order_by(Category.name_key.asc(), Category.id.asc())
        )
        return list(result.scalars())

    async def delete_by_id(self, category_id: uuid.UUID) -> None:
        await self.session.execute(delete(Category).where(Category.id == category_id))

    async def detach_children(self, category_id: uuid.UUID) -> int:
        result = await self.session.execute(
            update(Category).where(Category.parent_id == category_id).values(parent_id=None)
        )
        return int(result.rowcount or 0)

    async def list_page(self, *, page: int, limit: int, sort: str | None = None) -> tuple[list[Category], int]:
        total_items = int((await self.session.execute(select(func.count()).select_from(Category))).scalar_one() or 0)
        if sort == "newest":
            order = (Category.created_at.desc(), Category.id.desc())
        elif sort == "name_asc":
            order = (Category.name_key.asc(), Category.id.asc())
        elif sort == "name_desc":
            order = (Category.name_key.desc(), Category.id.asc())
        else:
            order = (Category.created_at.asc(), Category.id.asc())
        offset = (page - 1) * limit
        result = await self.session.execute(select(Category).order_by(*order).offset(offset).limit(limit))
        return list(result.scalars()), total_items


def sql_store_factory(session_factory: async_sessionmaker[AsyncSession]) -> StoreFactory:
    """Open one session and one transaction per call, translating driver failures to CategoryStorageError."""

    @asynccontextmanager
    async def open_store() -> AsyncIterator[CategoryStore]:
        try:
            async with session_factory() as session, session.begin():
                yield SqlCategoryStore(session)
        except (SQLAlchemyError, OSError) as exc:
            raise CategoryStorageError(f"Category store unavailable: {exc}") from exc

    return open_store


def _copy(category: Category) -> Category:
    return Category(id=category.id, name=category.name, parent_id=category.parent_id)


class InMemoryCategoryStore:
    """Dict-backed CategoryStore. ``transaction()`` serializes callers and rolls back on error."""

    def __init__(self) -> None:
        self._rows: dict[uuid.UUID, Category] = {}
        self._positions: dict[uuid.UUID, int] = {}
        self._sequence = itertools.count()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._rows)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[CategoryStore]:
        async with self._lock:
            rows = {key: _copy(value) for key, value in self._rows.items()}
            positions = dict(self._positions)
            try:
                yield self
            except BaseException:
                self._rows = rows
                self._positions = positions
                raise

    def _ordered(self, rows: list[Category]) -> list[Category]:
        return sorted(rows, key=lambda row: self._positions[row.id])

    async def insert(self, category: Category) -> Category:
        if category.id is None:
            category.id = uuid.uuid4()
        self._rows[category.id] = category
        self._positions[category.id] = next(self._sequence)
        return category

    async def replace(
        self, category_id: uuid.UUID, *, name: str, parent_id: uuid.UUID | None
    ) -> Category | None:
        category = self._rows.get(category_id)
        if category is None:
            return None
        category.name = name
        category.parent_id = parent_id
        return category

    async def find_by_id(self, category_id: uuid.UUID) -> Category | None:
        return self._rows.get(category_id)

    async def find_first_by_name(self, name: str, *, parent_id: Any = UNSCOPED) -> Category | None:
        wanted = category_name_key(name)
        for row in self._ordered(list(self._rows.values())):
            if category_name_key(row.name) != wanted:
                continue
            if parent_id is not UNSCOPED and row.parent_id != parent_id:
                continue
            return row
        return None

    async def find_top_by_name_containing(self, text: str, limit: int = 10) -> list[Category]:
        needle = category_name_key(text)
        matches = [row for row in self._rows.values() if needle in category_name_key(row.name)]
        matches.sort(key=lambda row: (category_name_key(row.name), str(row.id)))
        return matches[:limit]

    async def find_children(self, category_id: uuid.UUID) -> list[Category]:
        children = [row for row in self._rows.values() if row.parent_id == category_id]
        children.sort(key=lambda row: (category_name_key(row.name), str(row.id)))
        return children

    async def delete_by_id(self, category_id: uuid.UUID) -> None:
        self._rows.pop(category_id, None)
        self._positions.pop(category_id, None)

    async def detach_children(self, category_id: uuid.UUID) -> int:
        detached = 0
        for row in self._rows.values():
            if row.parent_id == category_id:
                row.parent_id = None
                detached += 1
        return detached

    async def list_page(self, *, page: int, limit: int, sort: str | None = None) -> tuple[list[Category], int]:
        rows = list(self._rows.values())
        if sort == "newest":
            rows = list(reversed(self._ordered(rows)))
        elif sort == "name_asc":
            rows.sort(key=lambda row: (category_name_key(row.name), str(row.id)))
        elif sort == "name_desc":
            rows.sort(key=lambda row: str(row.id))
            rows.sort(key=lambda row: category_name_key(row.name), reverse=True)
        else:
            rows = self._ordered(rows)
        offset = (page - 1) * limit
        return rows[offset : offset + limit], len(rows)
