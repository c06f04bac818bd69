# app/api/routers/products.py
from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, Path, Request, Response
from redis import Redis

from app.data.redis_client import get_redis
from app.domain.schemas import (
    UUID4_PATTERN,
    PaginationMeta,
    ProductCreate,
    ProductEnvelope,
    ProductListEnvelope,
    ProductListQuery,
    ProductOut,
    ProductPatch,
    ProductUpdate,
    StatsEnvelope,
    StatsOut,
)
from app.domain.validation import validate
from app.repos.product_repo import ProductRepo

router = APIRouter(prefix="/products", tags=["products"])

ProductIdPath = Annotated[str, Path(pattern=UUID4_PATTERN, description="Product UUID (v4)")]


def get_repo(client: Redis = Depends(get_redis)) -> ProductRepo:
    return ProductRepo(client)


@router.post("", response_model=ProductEnvelope, status_code=201, response_model_exclude_none=True)
def create_product(payload: ProductCreate, repo: ProductRepo = Depends(get_repo)):
    product = repo.create(payload.fields())
    return ProductEnvelope(data=ProductOut.from_product(product), message="Product created")


@router.get("", response_model=ProductListEnvelope)
def list_products(request: Request, response: Response, repo: ProductRepo = Depends(get_repo)):
    """
    Paginated listing, optionally filtered by name substring and price range.
    Order is insertion order.
    """
    query = validate(ProductListQuery, dict(request.query_params))
    result = repo.list(query, query)
    meta = result["pagination"]

    response.headers["X-Total-Count"] = str(meta["total"])
    response.headers["X-Page"] = str(meta["page"])
    response.headers["X-Total-Pages"] = str(meta["totalPages"])

    return ProductListEnvelope(
        data=[ProductOut.from_product(p) for p in result["items"]],
        pagination=PaginationMeta(**meta),
        filters=query.echo(),
    )


@router.get("/stats", response_model=StatsEnvelope)
def product_stats(repo: ProductRepo = Depends(get_repo)):
    return StatsEnvelope(
        data=StatsOut(totalProducts=repo.count(), timestamp=datetime.now(timezone.utc)),
    )


@router.get("/{product_id}", response_model=ProductEnvelope, response_model_exclude_none=True)
def get_product(product_id: ProductIdPath, repo: ProductRepo = Depends(get_repo)):
    return ProductEnvelope(data=ProductOut.from_product(repo.get_by_id(product_id)))


@router.put("/{product_id}", response_model=ProductEnvelope, response_model_exclude_none=True)
def update_product(
    product_id: ProductIdPath,
    payload: ProductUpdate,
    repo: ProductRepo = Depends(get_repo),
):
    product = repo.update(product_id, payload.fields())
    return ProductEnvelope(data=ProductOut.from_product(product), message="Product updated")


@router.patch("/{product_id}", response_model=ProductEnvelope, response_model_exclude_none=True)
def patch_product(
    product_id: ProductIdPath,
    payload: ProductPatch,
    repo: ProductRepo = Depends(get_repo),
):
    product = repo.patch(product_id, payload.fields())
    return ProductEnvelope(data=ProductOut.from_product(product), message="Product updated")


@router.delete("/{product_id}", status_code=204)
def delete_product(product_id: ProductIdPath, repo: ProductRepo = Depends(get_repo)):
    repo.delete(product_id)
    return Response(status_code=204)
