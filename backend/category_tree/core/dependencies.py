from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from category_tree.core.config import settings
from category_tree.db.session import get_session_factory
from category_tree.repositories.categories import sql_store_factory
from category_tree.services.categories import CategoryService


def get_category_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> CategoryService:
    return CategoryService(
        sql_store_factory(session_factory),
        search_limit=settings.search_limit,
        max_page_size=settings.max_page_size,
    )
