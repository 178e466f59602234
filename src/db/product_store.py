"""Product store gateway: idempotent upsert keyed by product URL."""

import logging
from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src import metrics
from src.db.models import Product, ProductListMembership
from src.ingest.base import ErrorCode, ScraperError
from src.normalize.processor import CanonicalProduct

logger = logging.getLogger(__name__)


class PersistenceError(ScraperError):
    """A store write failed for a reason other than the expected insert race."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message, ErrorCode.PERSISTENCE_ERROR)


class ProductStore:
    """Insert-or-update canonical products, at most one row per URL.

    No lock serializes concurrent scrapes of the same URL. Two callers may
    both miss the lookup and both insert; the unique constraint on
    ``products.url`` rejects the loser, which then retries as an update of
    the winner's row.
    """

    MAX_ATTEMPTS = 3

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def upsert(self, product: CanonicalProduct) -> tuple[str, bool]:
        """
        Save ``product``, replacing any existing record for its URL.

        Args:
            product: Normalized product

        Returns:
            (product_id, created) - created is False when an existing row was overwritten

        Raises:
            PersistenceError: On storage failures
        """
        values = self._row_values(product)

        for attempt in range(self.MAX_ATTEMPTS):
            try:
                async with self._session_factory() as db:
                    now = datetime.utcnow()
                    existing = await self._find_by_url(db, product.url)

                    if existing is not None:
                        # Full replace: every normalized field comes from this extraction
                        for key, value in values.items():
                            setattr(existing, key, value)
                        existing.updated_at = now
                        existing.last_scraped_at = now
                        await db.commit()

                        action = "race_recovered" if attempt else "updated"
                        metrics.product_upserts_total.labels(action=action).inc()
                        logger.info(f"Updated product {existing.id} for {product.url}")
                        return existing.id, False

                    row = Product(
                        id=str(uuid4()),
                        url=product.url,
                        created_at=now,
                        updated_at=now,
                        last_scraped_at=now,
                        **values,
                    )
                    db.add(row)
                    try:
                        await db.commit()
                    except IntegrityError:
                        await db.rollback()
                        logger.info(
                            f"Concurrent insert won for {product.url}; retrying as update "
                            f"(attempt {attempt + 1}/{self.MAX_ATTEMPTS})"
                        )
                        continue

                    metrics.product_upserts_total.labels(action="inserted").inc()
                    logger.info(f"Inserted product {row.id} for {product.url}")
                    return row.id, True

            except SQLAlchemyError as e:
                logger.error(f"Failed to save product {product.url}: {type(e).__name__}: {e}")
                raise PersistenceError(f"Failed to save product: {e}", cause=e) from e

        raise PersistenceError(
            f"Failed to save product: {product.url} kept conflicting after "
            f"{self.MAX_ATTEMPTS} attempts"
        )

    async def add_to_list(self, product_id: str, list_id: str) -> bool:
        """
        Add a product to a list; duplicates are ignored.

        Returns:
            True if a new membership was written, False if it already existed
        """
        try:
            async with self._session_factory() as db:
                existing = await db.execute(
                    select(ProductListMembership.id).where(
                        ProductListMembership.product_id == product_id,
                        ProductListMembership.list_id == list_id,
                    )
                )
                if existing.scalar_one_or_none() is not None:
                    return False

                db.add(ProductListMembership(product_id=product_id, list_id=list_id))
                try:
                    await db.commit()
                except IntegrityError:
                    # Same pair written concurrently
                    await db.rollback()
                    return False

                logger.info(f"Added product {product_id} to list {list_id}")
                return True

        except SQLAlchemyError as e:
            logger.error(f"Failed to add product {product_id} to list {list_id}: {e}")
            raise PersistenceError(f"Failed to add product to list: {e}", cause=e) from e

    async def get(self, product_id: str) -> Optional[Product]:
        async with self._session_factory() as db:
            return await db.get(Product, product_id)

    async def get_by_url(self, url: str) -> Optional[Product]:
        async with self._session_factory() as db:
            return await self._find_by_url(db, url)

    async def _find_by_url(self, db: AsyncSession, url: str) -> Optional[Product]:
        result = await db.execute(select(Product).where(Product.url == url))
        return result.scalar_one_or_none()

    @staticmethod
    def _row_values(product: CanonicalProduct) -> dict[str, Any]:
        """Column values for every normalized field except the URL key."""
        data = product.to_dict()
        return {
            "platform": data["platform"],
            "name": product.name,
            "price_current": product.price_current,
            "price_original": product.price_original,
            "currency": product.currency,
            "sku": product.sku,
            "brand": product.brand,
            "description": product.description,
            "specifications": data["specifications"],
            "features": data["features"],
            "rating_average": product.rating_average,
            "rating_count": product.rating_count,
            "primary_image_url": product.primary_image_url,
            "images": data["images"],
            "videos": data["videos"],
            "stock_status": data["stock_status"],
            "shipping_info": data["shipping_info"],
            "variants": data["variants"],
            "categories": data["categories"],
            "metadata_json": data["metadata"],
        }
