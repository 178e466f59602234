"""Product scraping routes."""

import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import get_database, get_scraping_service, require_user_id
from src.db.models import Product, ScrapeJob
from src.ingest.base import ErrorCode, ScraperError
from src.worker.scraping_service import ScrapingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", tags=["products"])


class ScrapeRequest(BaseModel):
    url: str
    list_id: Optional[str] = None

    @field_validator("list_id")
    @classmethod
    def blank_list_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v


class ScrapeJobResponse(BaseModel):
    id: str
    url: str
    user_id: str
    platform: str | None
    status: str
    error_message: str | None
    error_code: str | None
    product_id: str | None
    started_at: datetime | None
    completed_at: datetime | None
    created_at: datetime

    class Config:
        from_attributes = True


def _error_response(status_code: int, message: str, code: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": {"message": message, "code": code}},
    )


def serialize_product(product: Product) -> dict[str, Any]:
    """Stored product row as a JSON-friendly dict."""
    return {
        "id": product.id,
        "url": product.url,
        "platform": product.platform,
        "name": product.name,
        "price_current": float(product.price_current) if product.price_current is not None else None,
        "price_original": float(product.price_original) if product.price_original is not None else None,
        "currency": product.currency,
        "sku": product.sku,
        "brand": product.brand,
        "description": product.description,
        "specifications": product.specifications,
        "features": product.features,
        "rating_average": product.rating_average,
        "rating_count": product.rating_count,
        "primary_image_url": product.primary_image_url,
        "images": product.images,
        "videos": product.videos,
        "stock_status": product.stock_status,
        "shipping_info": product.shipping_info,
        "variants": product.variants,
        "categories": product.categories,
        "metadata": product.metadata_json,
        "created_at": product.created_at.isoformat() if product.created_at else None,
        "updated_at": product.updated_at.isoformat() if product.updated_at else None,
        "last_scraped_at": product.last_scraped_at.isoformat() if product.last_scraped_at else None,
    }


@router.post("/scrape")
async def scrape_product(
    payload: ScrapeRequest,
    user_id: str = Depends(require_user_id),
    service: ScrapingService = Depends(get_scraping_service),
):
    """Scrape a product URL and save it, optionally adding it to a list."""
    try:
        result = await service.scrape_product(payload.url, user_id, list_id=payload.list_id)
    except ScraperError as e:
        return _error_response(400, e.message, e.code.value)
    except Exception as e:
        logger.exception(f"Unhandled error scraping {payload.url}")
        return _error_response(500, str(e) or "Internal error", ErrorCode.UNKNOWN_ERROR.value)

    return {"success": True, "data": result.to_dict()}


@router.get("/jobs/{job_id}", response_model=ScrapeJobResponse)
async def get_scrape_job(job_id: str, db: AsyncSession = Depends(get_database)):
    """Get a scrape job by ID."""
    job = await db.get(ScrapeJob, job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Scrape job not found")
    return job


@router.get("/{product_id}")
async def get_product(product_id: str, db: AsyncSession = Depends(get_database)):
    """Get a product by ID."""
    product = await db.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return serialize_product(product)
