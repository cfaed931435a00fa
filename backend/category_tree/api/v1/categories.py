import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status

from category_tree.core.config import settings
from category_tree.core.dependencies import get_category_service
from category_tree.schemas.category import CategoryImportRequest, CategoryPayload, CategoryRead, ImportSummary
from category_tree.services import hierarchy_import
from category_tree.services.categories import CategoryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/categories", tags=["categories"])


def _pagination_links(request: Request, *, page: int, limit: int, total_pages: int) -> str:
    def link(target: int, rel: str) -> str:
        url = request.url.include_query_params(page=target, limit=limit)
        return f'<{url}>; rel="{rel}"'

    links = []
    if page < total_pages:
        links.append(link(page + 1, "next"))
    if page > 1:
        links.append(link(page - 1, "prev"))
    links.append(link(total_pages, "last"))
    links.append(link(1, "first"))
    return ",".join(links)


@router.post("", response_model=CategoryRead, status_code=status.HTTP_201_CREATED)
async def create_category(
    payload: CategoryPayload,
    response: Response,
    service: CategoryService = Depends(get_category_service),
) -> CategoryRead:
    logger.debug("create_category", extra={"category_name": payload.name})
    result = await service.create(payload)
    response.headers["Location"] = f"/api/v1/categories/{result.id}"
    return result


@router.put("", response_model=CategoryRead)
async def update_category(
    payload: CategoryPayload,
    service: CategoryService = Depends(get_category_service),
) -> CategoryRead:
    return await service.update(payload)


@router.get("", response_model=list[CategoryRead])
async def list_categories(
    request: Request,
    response: Response,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    sort: str | None = Query(default=None, pattern="^(oldest|newest|name_asc|name_desc)$"),
    service: CategoryService = Depends(get_category_service),
) -> list[CategoryRead]:
    result = await service.find_all(page=page, limit=limit, sort=sort)
    response.headers["X-Total-Count"] = str(result.meta.total_items)
    response.headers["Link"] = _pagination_links(
        request, page=result.meta.page, limit=result.meta.limit, total_pages=result.meta.total_pages
    )
    return result.items


@router.get("/search", response_model=list[CategoryRead])
async def search_categories(
    query: str = Query(min_length=1),
    service: CategoryService = Depends(get_category_service),
) -> list[CategoryRead]:
    return await service.find_by_query(query)


@router.get("/sub-categories", response_model=CategoryRead)
async def get_category_by_parent_name(
    parent: str = Query(min_length=1),
    service: CategoryService = Depends(get_category_service),
) -> CategoryRead:
    # Returns the matched category itself; its children come from /{category_id}/children.
    category = await service.find_by_name(parent)
    if category is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    return category


@router.post("/import", response_model=ImportSummary)
async def import_categories(
    payload: CategoryImportRequest,
    service: CategoryService = Depends(get_category_service),
) -> ImportSummary:
    # Server-side reads stay off until an import directory is configured.
    if settings.import_root is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Category import is disabled")
    return await hierarchy_import.import_file(
        service,
        payload.path,
        scope=payload.scope or settings.import_match_scope,
        encoding=payload.encoding or settings.import_encoding,
        root=settings.import_root,
    )


@router.get("/{category_id}", response_model=CategoryRead)
async def get_category(category_id: UUID, service: CategoryService = Depends(get_category_service)) -> CategoryRead:
    category = await service.find_one(category_id)
    if category is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    return category


@router.get("/{category_id}/children", response_model=list[CategoryRead])
async def list_children(
    category_id: UUID, service: CategoryService = Depends(get_category_service)
) -> list[CategoryRead]:
    if await service.find_one(category_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    return await service.find_children(category_id)


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(category_id: UUID, service: CategoryService = Depends(get_category_service)) -> None:
    await service.delete(category_id)
    return None
