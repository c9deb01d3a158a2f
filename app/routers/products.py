from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..context import AppContext, get_ctx
from ..core.schemas import ProductIn, ProductUpdate
from ..services.catalog import ProductCatalog

router = APIRouter(prefix="/products", tags=["products"])


@router.get("")
def list_products(q: Optional[str] = Query(default=None), ctx: AppContext = Depends(get_ctx)):
    items = ProductCatalog(ctx).list_products(search=q)
    return {"count": len(items), "items": items}


@router.get("/{product_id}")
def get_product(product_id: int, ctx: AppContext = Depends(get_ctx)):
    return ProductCatalog(ctx).get_product(product_id)


@router.post("", status_code=201)
def create_product(payload: ProductIn, ctx: AppContext = Depends(get_ctx)):
    return ProductCatalog(ctx).create(payload.name, payload.price, payload.image)


@router.put("/{product_id}")
def update_product(product_id: int, payload: ProductUpdate, ctx: AppContext = Depends(get_ctx)):
    return ProductCatalog(ctx).update(product_id, payload.name, payload.price, payload.image)


@router.delete("/{product_id}")
def delete_product(product_id: int, ctx: AppContext = Depends(get_ctx)):
    ProductCatalog(ctx).delete(product_id)
    return {"deleted": True, "id": product_id}
