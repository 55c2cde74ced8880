"""Dependency injection"""
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.db.session import SessionLocal


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Database session dependency
    """
    async with SessionLocal() as session:
        yield session
