import os
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import FileResponse, JSONResponse
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from logger import get_logger
from models import Country
from schemas import CountryCreate, CountryResponse, RefreshResponse, SortOption, StatusResponse
from service import DataSourceUnavailable, country_service

logger = get_logger(__name__)
router = APIRouter()

SORT_ORDERS = {
    # "IS NULL" first keeps nulls last on every backend, including MySQL
    SortOption.gdp_desc: (Country.estimated_gdp.is_(None), Country.estimated_gdp.desc()),
    SortOption.gdp_asc: (Country.estimated_gdp.is_(None), Country.estimated_gdp.asc()),
    SortOption.name_asc: (Country.name.asc(),),
    SortOption.name_desc: (Country.name.desc(),),
}


def not_found() -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"error": "Country not found"})


@router.post("/countries/refresh", response_model=RefreshResponse, status_code=status.HTTP_200_OK)
async def refresh_countries(db: AsyncSession = Depends(get_db)):
    try:
        result = await country_service.refresh_countries(db)
    except DataSourceUnavailable as e:
        logger.error(f"Refresh failed: {e} ({e.reason})")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"error": "External data source unavailable", "details": str(e)},
        )
    except SQLAlchemyError as e:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error", "details": str(e)},
        )
    except Exception as e:
        logger.exception("Unexpected error during refresh")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error", "details": str(e)},
        )
    return {"message": "Countries data refreshed successfully", "total_countries_processed": result.total_processed}


@router.get("/countries", response_model=List[CountryResponse], status_code=status.HTTP_200_OK)
async def list_countries(
    region: Optional[str] = Query(None),
    currency: Optional[str] = Query(None),
    sort: Optional[SortOption] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    stmt = select(Country)
    if region:
        stmt = stmt.where(Country.region == region)
    if currency:
        stmt = stmt.where(Country.currency_code == currency)
    stmt = stmt.order_by(*SORT_ORDERS[sort]) if sort else stmt.order_by(Country.id)
    try:
        result = await db.execute(stmt)
        return result.scalars().all()
    except SQLAlchemyError:
        logger.exception("Failed to list countries")
        raise HTTPException(status_code=500, detail={"error": "Internal server error"})


@router.post("/countries", response_model=CountryResponse, status_code=status.HTTP_201_CREATED)
async def create_country(payload: CountryCreate, db: AsyncSession = Depends(get_db)):
    if await country_service.find_by_name(db, payload.name):
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"error": "Country already exists"})
    country = Country(**payload.model_dump(), last_refreshed_at=datetime.now(timezone.utc))
    try:
        db.add(country)
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to create country")
        raise HTTPException(status_code=500, detail={"error": "Internal server error"})
    await db.refresh(country)
    logger.info(f"Created country {country.name}")
    return country


@router.get("/countries/image")
async def get_summary_image():
    path = country_service.image_path
    if not os.path.exists(path):
        logger.info("Summary image not found at %s", path)
        return JSONResponse(status_code=404, content={"error": "Summary image not found"})
    return FileResponse(path, media_type="image/png")


@router.get("/countries/{name}", response_model=CountryResponse)
async def get_country(name: str, db: AsyncSession = Depends(get_db)):
    country = await country_service.find_by_name(db, name)
    if not country:
        return not_found()
    return country


@router.delete("/countries/{name}")
async def delete_country(name: str, db: AsyncSession = Depends(get_db)):
    country = await country_service.find_by_name(db, name)
    if not country:
        return not_found()
    try:
        await db.delete(country)
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to delete country")
        raise HTTPException(status_code=500, detail={"error": "Internal server error"})
    return {"message": f"Country '{country.name}' deleted successfully"}


@router.get("/status", response_model=StatusResponse)
async def get_status(db: AsyncSession = Depends(get_db)):
    try:
        total_res = await db.execute(select(func.count(Country.id)))
        total = total_res.scalar() or 0
        last_refreshed_at = await country_service.get_last_refreshed_at(db)
    except SQLAlchemyError:
        logger.exception("Failed to fetch status")
        raise HTTPException(status_code=500, detail={"error": "Internal server error"})
    return {"total_countries": total, "last_refreshed_at": last_refreshed_at}
