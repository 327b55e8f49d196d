from datetime import datetime
from typing import List
import logging

from pymongo.errors import DuplicateKeyError

from storefront.shared.utils import (
    NotFoundException, ValidationException, persistence_guard, to_mongo
)
from storefront.products.facets import derive_facets
from storefront.products.models import Category, ProductDB
from storefront.products.schemas import (
    ProductCreate, ProductUpdate, ProductResponse, ProductFilters
)

logger = logging.getLogger(__name__)


def to_response(doc: dict) -> ProductResponse:
    doc.pop("_id", None)
    return ProductResponse(**doc)


class ProductStore:
    """Catalog records keyed by their numeric `id` (unique index)."""

    def __init__(self, collection):
        self.collection = collection

    async def ensure_indexes(self):
        await self.collection.create_index("id", unique=True)
        await self.collection.create_index("category")

    async def _find(self, query: dict) -> List[dict]:
        with persistence_guard("load products"):
            return [doc async for doc in self.collection.find(query)]

    async def list_all(self) -> List[ProductResponse]:
        return [to_response(doc) for doc in await self._find({})]

    async def list_by_category(self, category: str) -> List[ProductResponse]:
        parsed = Category.parse(category)
        if parsed is None:
            return []
        return [to_response(doc) for doc in await self._find({"category": parsed.value})]

    async def filters(self, category: str) -> ProductFilters:
        parsed = Category.parse(category)
        if parsed is None:
            return derive_facets(None, [])
        docs = await self._find({"category": parsed.value})
        return derive_facets(parsed, docs)

    async def get(self, product_id: int) -> ProductResponse:
        with persistence_guard("load product"):
            doc = await self.collection.find_one({"id": product_id})
        if not doc:
            raise NotFoundException("Product not found")
        return to_response(doc)

    async def create(self, product: ProductCreate) -> ProductResponse:
        product_db = ProductDB(**product.model_dump())
        product_dict = to_mongo(product_db.model_dump())
        with persistence_guard("create product"):
            try:
                await self.collection.insert_one(product_dict)
            except DuplicateKeyError:
                raise ValidationException(
                    "Product with this ID already exists. Please use a different ID.",
                    fields=["id"],
                )
        logger.info(f"Product {product.id} created", extra={"category": product_dict["category"]})
        return await self.get(product.id)

    async def update(self, product_id: int, patch: ProductUpdate) -> ProductResponse:
        update_data = to_mongo(patch.model_dump(exclude_none=True))
        update_data["updated_at"] = datetime.utcnow()
        with persistence_guard("update product"):
            result = await self.collection.update_one({"id": product_id}, {"$set": update_data})
        if result.matched_count == 0:
            raise NotFoundException("Product not found")
        return await self.get(product_id)

    async def delete(self, product_id: int) -> None:
        with persistence_guard("delete product"):
            result = await self.collection.delete_one({"id": product_id})
        if result.deleted_count == 0:
            raise NotFoundException("Product not found")
