"""
Catalog stores: read access to a business's product records.

The generator never writes catalog data during a run; `add_products`
exists for loading catalogs from the CLI and in tests.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Iterable, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from feedgen.models.schemas import Product, ProductStatus
from feedgen.storage.database import CatalogProductRow, create_session_factory
from feedgen.utils.errors import CatalogReadError
from feedgen.utils.logger import get_logger

logger = get_logger(__name__)

ProductInput = Union[Product, dict[str, Any]]


def _as_product(item: ProductInput) -> Product:
    return item if isinstance(item, Product) else Product.model_validate(item)


class CatalogStore(ABC):
    """Abstract interface for catalog reads."""

    @abstractmethod
    async def list_active_products(self, business_id: str) -> list[Product]:
        """
        Active products of a business, in storage order.

        Raises:
            CatalogReadError: The catalog could not be read.
        """
        pass

    @abstractmethod
    async def add_products(self, products: Iterable[ProductInput]) -> int:
        """Append products to the catalog. Returns the number stored."""
        pass


class InMemoryCatalogStore(CatalogStore):
    """In-memory catalog for testing."""

    def __init__(self, products: Iterable[ProductInput] = ()):
        self._products: list[Product] = [_as_product(p) for p in products]

    async def list_active_products(self, business_id: str) -> list[Product]:
        return [
            p for p in self._products
            if p.business_id == business_id and p.status == ProductStatus.ACTIVE
        ]

    async def add_products(self, products: Iterable[ProductInput]) -> int:
        added = [_as_product(p) for p in products]
        self._products.extend(added)
        return len(added)


class SqlCatalogStore(CatalogStore):
    """Catalog backed by the `catalog_products` table."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._sessions = create_session_factory(engine)

    async def list_active_products(self, business_id: str) -> list[Product]:
        try:
            return await asyncio.to_thread(self._list_active, business_id)
        except (SQLAlchemyError, PydanticValidationError) as e:
            logger.error("Catalog read failed", business_id=business_id, error=str(e))
            raise CatalogReadError(
                f"Failed to read catalog for business '{business_id}': {e}",
                details={"business_id": business_id},
            ) from e

    def _list_active(self, business_id: str) -> list[Product]:
        stmt = (
            select(CatalogProductRow.payload)
            .where(CatalogProductRow.business_id == business_id)
            .where(CatalogProductRow.status == ProductStatus.ACTIVE.value)
            .order_by(CatalogProductRow.id)
        )
        with self._sessions() as session:
            return [Product.model_validate(payload) for payload in session.scalars(stmt)]

    async def add_products(self, products: Iterable[ProductInput]) -> int:
        parsed = [_as_product(p) for p in products]
        await asyncio.to_thread(self._insert, parsed)
        logger.info("Catalog products stored", count=len(parsed))
        return len(parsed)

    def _insert(self, products: list[Product]) -> None:
        with self._sessions.begin() as session:
            session.add_all(
                CatalogProductRow(
                    product_id=p.product_id,
                    business_id=p.business_id,
                    status=str(ProductStatus(p.status).value),
                    payload=p.model_dump(mode="json"),
                )
                for p in products
            )
