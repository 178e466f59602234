"""FastAPI dependencies."""

from fastapi import Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.session import get_db
from src.worker.scraping_service import ScrapingService


async def get_database() -> AsyncSession:
    """Dependency for database session."""
    async for session in get_db():
        yield session
        break  # Only yield once, as FastAPI handles the session lifecycle


def get_scraping_service(request: Request) -> ScrapingService:
    """The scraping service built during application start-up."""
    service = getattr(request.app.state, "scraping_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Scraping service not initialized",
        )
    return service


async def require_user_id(
    x_user_id: str = Header(..., alias="X-User-Id")
) -> str:
    """
    Requesting user from the X-User-Id header.

    Authentication happens upstream; the header is trusted as-is.

    Raises:
        HTTPException: 401 if the header is blank
    """
    user_id = x_user_id.strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id header is empty",
        )
    return user_id
