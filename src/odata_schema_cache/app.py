"""FastAPI application exposing cached OData schema structure.

The app is a thin inspection surface over a :class:`SchemaRegistry`. Every
schema endpoint takes the service root URL as the ``url`` query parameter;
the first request for a URL fetches ``$metadata`` once, later requests are
served from the cache.

Quick start (run the server)::

    uvicorn odata_schema_cache.app:app --reload

Core endpoints:

    GET    /health                                   Basic health probe
    GET    /schemas/entity-sets?url=...              Top-level entity sets
    GET    /schemas/entity-sets/{path}?url=...       One (possibly derived) entity set
    GET    /schemas/entity-types?url=...             Entity type definitions
    GET    /schemas/complex-types?url=...            Complex type definitions
    POST   /schemas/reset?url=...                    Reset one schema's cache
    DELETE /schemas                                  Clear the registry
    GET    /metrics/schema-cache                     Cache counters

Example::

    curl "http://localhost:8000/schemas/entity-sets/Products/DiscontinuedProduct?url=https://services.odata.org/V4/Northwind/Northwind.svc/"

Error handling:
    * Unknown entity sets return 404, malformed paths 400.
    * Metadata fetch failures return 502, unparseable metadata 422.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from . import __version__
from .errors import (
    InvalidEntitySetPathError,
    MetadataFetchError,
    SchemaParseError,
)
from .monitoring import get_monitor
from .registry import SchemaRegistry, from_url, get_schema_registry
from .schema import ResolvedSchema

app = FastAPI(
    title="OData Schema Cache",
    version=__version__,
    description="Inspect cached OData service schemas (entity sets, entity and complex types)",
    docs_url="/docs",
    redoc_url="/redoc",
)


class EntitySetModel(BaseModel):
    """Serialized entity set."""

    name: str = Field(..., description="Entity set name")
    path: str = Field(..., description="Path including the base set for derived sets")
    entity_type: str = Field(..., description="Qualified entity type name")
    parent: Optional[str] = Field(None, description="Base entity set for derived sets")


class EntitySetListResponse(BaseModel):
    url: str = Field(..., description="Service root URL")
    entity_sets: List[EntitySetModel] = Field(default_factory=list)


class TypeListResponse(BaseModel):
    url: str = Field(..., description="Service root URL")
    types: List[Dict[str, Any]] = Field(default_factory=list)


class ResetResponse(BaseModel):
    url: str
    reset: bool = Field(..., description="False when the URL was not registered")


def get_registry() -> SchemaRegistry:
    """Dependency returning the registry backing the API (override in tests)."""
    return get_schema_registry()


async def _resolved_schema(url: str, registry: SchemaRegistry) -> ResolvedSchema:
    return await from_url(url, registry=registry).resolve()


@app.get("/health")
def health(registry: SchemaRegistry = Depends(get_registry)) -> Dict[str, Any]:
    """Basic liveness probe including registry size."""
    return {
        "status": "healthy",
        "version": __version__,
        "registered_schemas": len(registry),
    }


@app.get("/schemas/entity-sets", response_model=EntitySetListResponse)
async def list_entity_sets(
    url: str = Query(..., description="Service root URL"),
    registry: SchemaRegistry = Depends(get_registry),
) -> EntitySetListResponse:
    schema = await _resolved_schema(url, registry)
    return EntitySetListResponse(
        url=url,
        entity_sets=[EntitySetModel(**es.to_dict()) for es in schema.entity_sets],
    )


@app.get("/schemas/entity-sets/{entity_set_path:path}", response_model=EntitySetModel)
async def get_entity_set(
    entity_set_path: str,
    url: str = Query(..., description="Service root URL"),
    registry: SchemaRegistry = Depends(get_registry),
) -> EntitySetModel:
    schema = await _resolved_schema(url, registry)
    entity_set = schema.find_concrete_entity_set(entity_set_path)
    if entity_set is None:
        raise HTTPException(
            status_code=404, detail=f"Entity set '{entity_set_path}' not found"
        )
    return EntitySetModel(**entity_set.to_dict())


@app.get("/schemas/entity-types", response_model=TypeListResponse)
async def list_entity_types(
    url: str = Query(..., description="Service root URL"),
    registry: SchemaRegistry = Depends(get_registry),
) -> TypeListResponse:
    schema = await _resolved_schema(url, registry)
    return TypeListResponse(url=url, types=[t.to_dict() for t in schema.entity_types])


@app.get("/schemas/complex-types", response_model=TypeListResponse)
async def list_complex_types(
    url: str = Query(..., description="Service root URL"),
    registry: SchemaRegistry = Depends(get_registry),
) -> TypeListResponse:
    schema = await _resolved_schema(url, registry)
    return TypeListResponse(url=url, types=[t.to_dict() for t in schema.complex_types])


@app.post("/schemas/reset", response_model=ResetResponse)
def reset_schema(
    url: str = Query(..., description="Service root URL"),
    registry: SchemaRegistry = Depends(get_registry),
) -> ResetResponse:
    schema = registry.get(url)
    if schema is None:
        return ResetResponse(url=url, reset=False)
    schema.reset_cache()
    return ResetResponse(url=url, reset=True)


@app.delete("/schemas")
def clear_schemas(registry: SchemaRegistry = Depends(get_registry)) -> Dict[str, Any]:
    cleared = len(registry)
    registry.clear_all()
    return {"cleared": cleared}


@app.get("/metrics/schema-cache")
def schema_cache_metrics() -> Dict[str, Any]:
    return get_monitor().get_summary()


def _error_response(request: Request, status_code: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "detail": detail, "path": str(request.url.path)},
    )


@app.exception_handler(404)
async def not_found_handler(request: Request, exc):
    """Custom 404 handler with more helpful error messages."""
    return _error_response(
        request,
        404,
        "Not Found",
        str(exc.detail) if hasattr(exc, "detail") else "The requested resource was not found",
    )


@app.exception_handler(InvalidEntitySetPathError)
async def invalid_path_handler(request: Request, exc: InvalidEntitySetPathError):
    return _error_response(request, 400, "Bad Request", str(exc))


@app.exception_handler(SchemaParseError)
async def parse_error_handler(request: Request, exc: SchemaParseError):
    return _error_response(request, 422, "Unprocessable Metadata", str(exc))


@app.exception_handler(MetadataFetchError)
async def fetch_error_handler(request: Request, exc: MetadataFetchError):
    return _error_response(request, 502, "Bad Gateway", str(exc))
