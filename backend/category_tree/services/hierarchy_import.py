"""Bulk import of category chains from comma-delimited text.

Each line reads ``label,name1,name2,...,nameN``. The label is discarded and every
name becomes a child of the name before it. Lookups go through the service exactly
as an external caller would, so the importer holds no state beyond the current line.
"""

import logging
from collections.abc import Iterable
from functools import partial
from pathlib import Path

import anyio

from category_tree.core.errors import CategoryValidationError, ImportSourceError
from category_tree.repositories.categories import UNSCOPED
from category_tree.schemas.category import CategoryPayload, ImportScope, ImportSummary
from category_tree.services.categories import CategoryService

logger = logging.getLogger(__name__)

NAME_MAX_LENGTH = 255


async def import_lines(
    service: CategoryService, lines: Iterable[str], *, scope: ImportScope = "global"
) -> ImportSummary:
    """Resolve or create the chain described by every line, in order.

    With ``scope="global"`` an existing category with the same name anywhere in the
    tree is reused and the chain continues beneath it. With ``scope="parent"`` only a
    same-named child of the current parent is reused; otherwise a sibling is created.
    """
    summary = ImportSummary()
    for line_number, line in enumerate(lines, start=1):
        summary.lines += 1
        current_parent_id = None
        for raw in line.split(",")[1:]:
            name = raw.strip()
            if not name:
                summary.skipped_fields += 1
                continue
            if len(name) > NAME_MAX_LENGTH:
                raise CategoryValidationError(
                    f"Line {line_number}: category name exceeds {NAME_MAX_LENGTH} characters", code="namelength"
                )
            lookup_parent = current_parent_id if scope == "parent" else UNSCOPED
            resolved = await service.find_by_name(name, parent_id=lookup_parent)
            if resolved is None:
                resolved = await service.save(CategoryPayload(name=name, parent_category_id=current_parent_id))
                summary.created += 1
            else:
                summary.reused += 1
            current_parent_id = resolved.id
    return summary


def read_source(path: str | Path, *, encoding: str = "utf-8", root: str | Path | None = None) -> list[str]:
    """Read the whole source up front so an unreadable file aborts before anything is written.

    With ``root`` set, relative paths are taken from it and the resolved path must stay inside it.
    """
    source = Path(path)
    if root is not None:
        allowed = Path(root).resolve()
        if not source.is_absolute():
            source = allowed / source
        if not source.resolve().is_relative_to(allowed):
            raise ImportSourceError(f"Import path {path} is outside the import root")
    try:
        content = source.read_text(encoding=encoding)
    except (OSError, UnicodeDecodeError, LookupError) as exc:
        raise ImportSourceError(f"Cannot read import source {path}: {exc}") from exc
    return content.splitlines()


async def import_file(
    service: CategoryService,
    path: str | Path,
    *,
    scope: ImportScope = "global",
    encoding: str = "utf-8",
    root: str | Path | None = None,
) -> ImportSummary:
    try:
        lines = await anyio.to_thread.run_sync(partial(read_source, path, encoding=encoding, root=root))
    except ImportSourceError as exc:
        logger.warning("category_import_failed", extra={"path": str(path), "error": exc.message})
        raise
    logger.info("category_import_started", extra={"path": str(path), "scope": scope, "lines": len(lines)})
    summary = await import_lines(service, lines, scope=scope)
    logger.info("category_import_finished", extra={"path": str(path), "summary": summary.model_dump()})
    return summary
