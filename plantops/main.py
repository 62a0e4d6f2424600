"""FastAPI service for gated record edits/deletes.

The dashboard pages call this service instead of writing to the record
backend themselves:
- edits and deletes go through the mutation gate
- reviewers list, approve and reject queued requests

Important:
- Identity comes from the session gateway as trusted headers
- Every error kind maps to a distinct status code with request context
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from plantops.api.errors import register_error_handlers
from plantops.api.routes import register_routes
from plantops.db.connection import init_db

tags_metadata = [
    {
        "name": "Records",
        "description": "Edit/delete plant records through the role policy gate"
    },
    {
        "name": "Approvals",
        "description": "Review queued edit/delete requests"
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(
    title='Plant Operations Mutation Gate',
    version='1.0.0',
    description='Role-based edit/delete gate with deferred approval',
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

# Register all API routes
register_routes(app)
register_error_handlers(app)
