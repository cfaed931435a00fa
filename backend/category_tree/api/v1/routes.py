from fastapi import APIRouter

from category_tree.api.v1 import categories

api_router = APIRouter()

api_router.include_router(categories.router)


@api_router.get("/health", tags=["health"])
def healthcheck() -> dict[str, str]:
    return {"status": "ok"}
