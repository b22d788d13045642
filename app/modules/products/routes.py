from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from supabase import Client

from app.core.audit import SecurityEventLogger, get_audit_logger
from app.core.context import AuthContext
from app.core.dependencies import Pagination, get_pagination, require_permission
from app.core.responses import success_response
from app.core.validation import validated_body
from app.database.supabase_client import get_supabase
from app.modules.products.schemas import ProductCreate, ProductUpdate
from app.modules.products.service import ProductService

router = APIRouter(prefix="/products", tags=["products"])


def get_product_service(supabase: Client = Depends(get_supabase)) -> ProductService:
    return ProductService(supabase)


@router.get("")
async def list_products(
    active: Literal["true", "false", "all"] = Query("true"),
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    pagination: Pagination = Depends(get_pagination),
    context: AuthContext = Depends(require_permission("products:read")),
    service: ProductService = Depends(get_product_service),
    audit: SecurityEventLogger = Depends(get_audit_logger),
):
    """List the workspace catalog (active products unless `active=false|all`)"""
    with audit.on_failure(context, "PRODUCTS_ACCESS_ERROR"):
        products, total = service.list_products(context, active, category, search, pagination)
    audit.log(context.event("PRODUCTS_ACCESSED", metadata={
        "productCount": len(products),
        "filters": {"active": active, "category": category, "search": search},
    }))
    return success_response({"products": products, "pagination": pagination.summary(total)})


@router.post("")
async def create_product(
    context: AuthContext = Depends(require_permission("products:create")),
    product_data: ProductCreate = Depends(validated_body(ProductCreate)),
    service: ProductService = Depends(get_product_service),
    audit: SecurityEventLogger = Depends(get_audit_logger),
):
    with audit.on_failure(context, "PRODUCT_CREATE_ERROR", productName=product_data.name):
        product = service.create_product(context, product_data)
    audit.log(context.event("PRODUCT_CREATED", metadata={
        "productId": product.id, "productName": product.name, "price": product.price,
    }))
    return success_response(product, "Product created successfully", status_code=201)


@router.get("/{product_id}")
async def get_product(
    product_id: str,
    context: AuthContext = Depends(require_permission("products:read")),
    service: ProductService = Depends(get_product_service),
    audit: SecurityEventLogger = Depends(get_audit_logger),
):
    with audit.on_failure(context, "PRODUCT_ACCESS_ERROR"):
        product = service.get_product(context, product_id)
    audit.log(context.event("PRODUCT_ACCESSED", metadata={"productId": product_id}))
    return success_response(product)


@router.put("/{product_id}")
async def update_product(
    product_id: str,
    context: AuthContext = Depends(require_permission("products:update")),
    product_data: ProductUpdate = Depends(validated_body(ProductUpdate)),
    service: ProductService = Depends(get_product_service),
    audit: SecurityEventLogger = Depends(get_audit_logger),
):
    with audit.on_failure(context, "PRODUCT_UPDATE_ERROR"):
        product = service.update_product(context, product_id, product_data)
    audit.log(context.event("PRODUCT_UPDATED", metadata={
        "productId": product_id, "changes": sorted(product_data.model_fields_set),
    }))
    return success_response(product, "Product updated successfully")


@router.delete("/{product_id}")
async def delete_product(
    product_id: str,
    context: AuthContext = Depends(require_permission("products:delete")),
    service: ProductService = Depends(get_product_service),
    audit: SecurityEventLogger = Depends(get_audit_logger),
):
    """Soft delete (is_active=false)"""
    with audit.on_failure(context, "PRODUCT_DELETE_ERROR"):
        existing = service.delete_product(context, product_id)
    audit.log(context.event("PRODUCT_DELETED", metadata={
        "productId": product_id, "productName": existing.get("name"),
    }))
    return success_response(message="Product deleted successfully")
