"""
Shared FastAPI dependencies for the routers.

Every request gets one session, one store bound to it, and one engine
facade bound to that store, so all reads and writes of a request share
a single transaction.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from taskgraph.database import get_session
from taskgraph.services import GraphIntegrityFacade, SqlTaskStore


async def get_store(session: AsyncSession = Depends(get_session)) -> SqlTaskStore:
    return SqlTaskStore(session)


async def get_engine(store: SqlTaskStore = Depends(get_store)) -> GraphIntegrityFacade:
    return GraphIntegrityFacade(store)
