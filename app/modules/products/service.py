import re
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from supabase import Client

from app.core.context import AuthContext
from app.core.dependencies import Pagination, count_of
from app.core.exceptions import NotFoundError
from app.database.supabase_client import execute, first_row
from app.modules.products.schemas import ProductCreate, ProductUpdate, ProductResponse

SORTABLE_COLUMNS = {"created_at", "updated_at", "name", "price", "category"}

# Characters with meaning inside a PostgREST or=() filter
_FILTER_SYNTAX = re.compile(r"[,()*%\\]")


class ProductService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _find(self, context: AuthContext, product_id: str, columns: str = "*") -> Optional[dict]:
        return first_row(
            self.supabase.table("products")
                .select(columns)
                .eq("id", product_id)
                .eq("workspace_id", context.workspace_id),
            "Failed to fetch product",
        )

    def list_products(
        self,
        context: AuthContext,
        active: str = "true",
        category: Optional[str] = None,
        search: Optional[str] = None,
        pagination: Pagination = None,
    ) -> Tuple[List[ProductResponse], int]:
        """`active` is "true" (default), "false" or "all"."""
        pagination = pagination or Pagination()
        query = self.supabase.table("products")\
            .select("*", count="exact")\
            .eq("workspace_id", context.workspace_id)
        if active != "all":
            query = query.eq("is_active", active == "true")
        if category:
            query = query.eq("category", category)
        term = _FILTER_SYNTAX.sub(" ", search or "").strip()
        if term:
            query = query.or_(f"name.ilike.%{term}%,description.ilike.%{term}%")

        result = execute(
            query.order(pagination.sort_column(SORTABLE_COLUMNS, "created_at"), desc=pagination.descending)
                 .range(pagination.start, pagination.end),
            "Failed to fetch products",
        )
        return [ProductResponse.model_validate(row) for row in result.data or []], count_of(result)

    def create_product(self, context: AuthContext, product_data: ProductCreate) -> ProductResponse:
        result = execute(
            self.supabase.table("products").insert({
                **product_data.model_dump(mode="json"),
                "workspace_id": context.workspace_id,
                "created_by": context.user_id,
            }),
            "Failed to create product",
        )
        return ProductResponse.model_validate(result.data[0])

    def get_product(self, context: AuthContext, product_id: str) -> ProductResponse:
        """Inactive (deleted) products are still returned by id."""
        row = self._find(context, product_id)
        if not row:
            raise NotFoundError("Product not found")
        return ProductResponse.model_validate(row)

    def update_product(self, context: AuthContext, product_id: str, product_data: ProductUpdate) -> ProductResponse:
        if not self._find(context, product_id, "id"):
            raise NotFoundError("Product not found")
        update_data = product_data.model_dump(mode="json", exclude_unset=True)
        update_data["updated_at"] = datetime.now(timezone.utc).isoformat()
        result = execute(
            self.supabase.table("products")
                .update(update_data)
                .eq("id", product_id)
                .eq("workspace_id", context.workspace_id),
            "Failed to update product",
        )
        if not result.data:
            raise NotFoundError("Product not found")
        return ProductResponse.model_validate(result.data[0])

    def delete_product(self, context: AuthContext, product_id: str) -> dict:
        """Soft delete: the row stays, flagged inactive."""
        existing = self._find(context, product_id, "id, name")
        if not existing:
            raise NotFoundError("Product not found")
        execute(
            self.supabase.table("products")
                .update({"is_active": False, "updated_at": datetime.now(timezone.utc).isoformat()})
                .eq("id", product_id)
                .eq("workspace_id", context.workspace_id),
            "Failed to delete product",
        )
        return existing
