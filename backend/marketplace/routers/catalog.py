"""Catalog API routes — suppliers and their offerings."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from marketplace.database import get_db
from marketplace.models.offering import Offering
from marketplace.models.supplier import Supplier
from marketplace.schemas.catalog import OfferingCreate, OfferingOut, SupplierCreate, SupplierOut
from marketplace.services.catalog import OfferingFilter, SqlCatalog

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/suppliers", response_model=SupplierOut, status_code=status.HTTP_201_CREATED)
def create_supplier(payload: SupplierCreate, db: Session = Depends(get_db)):
    """Register a supplier identity."""
    supplier = Supplier(**payload.model_dump())
    db.add(supplier)
    db.commit()
    db.refresh(supplier)
    logger.info("Created supplier %s (%s)", supplier.supplier_id, supplier.display_name)
    return supplier


@router.get("/suppliers/{supplier_id}", response_model=SupplierOut)
def get_supplier(supplier_id: str, db: Session = Depends(get_db)):
    supplier = db.query(Supplier).filter(Supplier.supplier_id == supplier_id).first()
    if not supplier:
        raise HTTPException(status_code=404, detail="Supplier not found")
    return supplier


@router.post("/offerings", response_model=OfferingOut, status_code=status.HTTP_201_CREATED)
def create_offering(payload: OfferingCreate, db: Session = Depends(get_db)):
    """Publish an offering for an existing supplier."""
    supplier = db.query(Supplier).filter(Supplier.supplier_id == payload.supplier_id).first()
    if not supplier:
        raise HTTPException(status_code=404, detail="Supplier not found")

    offering = Offering(**payload.model_dump())
    db.add(offering)
    db.commit()
    db.refresh(offering)
    logger.info("Created offering '%s' (%s) for supplier %s", offering.name, offering.offering_id, supplier.supplier_id)
    return offering


@router.get("/offerings", response_model=list[OfferingOut])
def list_offerings(
    category: Optional[str] = Query(None),
    max_price_per_day: Optional[int] = Query(None, ge=0),
    verified_only: bool = Query(False),
    db: Session = Depends(get_db),
):
    """List active offerings through the catalog query interface."""
    return SqlCatalog(db).list_active_offerings(OfferingFilter(
        max_price_per_day=max_price_per_day,
        category=category,
        verified_only=verified_only,
    ))
