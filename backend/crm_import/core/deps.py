from functools import lru_cache
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from crm_import.core.config import settings
from crm_import.db.session import get_session
from crm_import.imports.executor import ImportExecutor
from crm_import.imports.heuristics import load_heuristics
from crm_import.imports.registry import SchemaRegistry, build_default_registry
from crm_import.imports.store import SqlAlchemyRecordStore
from crm_import.imports.transformer import RowTransformer
from crm_import.services.activity import SqlActivityLogger


@lru_cache
def get_registry() -> SchemaRegistry:
    """Process-wide schema registry, built on first use."""
    return build_default_registry()


@lru_cache
def get_transformer() -> RowTransformer:
    return RowTransformer(load_heuristics(settings.IMPORT_HEURISTICS_FILE or None))


def build_executor(
    session: AsyncSession,
    registry: SchemaRegistry,
    transformer: RowTransformer,
) -> ImportExecutor:
    return ImportExecutor(
        store=SqlAlchemyRecordStore(session),
        activity=SqlActivityLogger(session),
        registry=registry,
        transformer=transformer,
        # one AsyncSession cannot serve concurrent batches
        max_concurrent_batches=1,
    )


async def get_executor(
    db: Annotated[AsyncSession, Depends(get_session)],
    registry: Annotated[SchemaRegistry, Depends(get_registry)],
    transformer: Annotated[RowTransformer, Depends(get_transformer)],
) -> ImportExecutor:
    return build_executor(db, registry, transformer)
