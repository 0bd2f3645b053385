"""Catalog Query Interface — read-only access to offerings and supplier identities."""
import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from sqlalchemy.orm import Session

from marketplace.models.offering import Offering
from marketplace.models.supplier import Supplier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OfferingFilter:
    max_price_per_day: Optional[int] = None
    category: Optional[str] = None
    verified_only: bool = False


class CatalogQuery(Protocol):
    def list_active_offerings(self, offering_filter: OfferingFilter) -> Sequence[Offering]: ...

    def get_supplier_profiles(self, supplier_ids: Sequence[str]) -> dict[str, dict]: ...


class SqlCatalog:
    """CatalogQuery backed by the offerings and suppliers tables."""

    def __init__(self, db: Session):
        self.db = db

    def list_active_offerings(self, offering_filter: OfferingFilter) -> list[Offering]:
        query = self.db.query(Offering).filter(Offering.is_active.is_(True))
        if offering_filter.max_price_per_day is not None:
            query = query.filter(Offering.price_per_day <= offering_filter.max_price_per_day)
        if offering_filter.category:
            query = query.filter(Offering.category.ilike(f"%{offering_filter.category}%"))
        if offering_filter.verified_only:
            query = query.filter(Offering.is_verified.is_(True))
        offerings = query.order_by(Offering.offering_id).all()
        logger.debug("Catalog returned %d active offerings for %s", len(offerings), offering_filter)
        return offerings

    def get_supplier_profiles(self, supplier_ids: Sequence[str]) -> dict[str, dict]:
        if not supplier_ids:
            return {}
        suppliers = self.db.query(Supplier).filter(Supplier.supplier_id.in_(list(supplier_ids))).all()
        return {s.supplier_id: {"name": s.display_name} for s in suppliers}
