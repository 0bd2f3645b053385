"""Recommendation Selector — turns an event brief into a budget-bounded draft.

One bulk catalog read, then a greedy pass: one offering per needed category
(an offering competes in every category it matches but is picked at most once),
verified suppliers first, cheapest next, never letting the running total
exceed the brief's budget ceiling. Nothing here raises; an empty draft is the
"no matching offerings" answer.
"""
import logging
from typing import Iterable, Mapping, Optional

from marketplace.config import settings
from marketplace.models.brief import EventBrief
from marketplace.models.offering import Offering
from marketplace.services.catalog import CatalogQuery, OfferingFilter
from marketplace.services.proposal_editor import DraftLine, ProposalDraft

logger = logging.getLogger(__name__)


def _keywords_for(category: str, synonyms: Mapping[str, Iterable[str]]) -> list[str]:
    """Lower-cased keywords accepted for a needed category (the category itself included)."""
    key = category.strip().lower()
    keywords = [key] + [kw.lower() for kw in synonyms.get(key, [])]
    return [kw for kw in dict.fromkeys(keywords) if kw]


def matching_categories(
    offering_category: str,
    needed_categories: list[str],
    synonyms: Mapping[str, Iterable[str]],
) -> list[str]:
    """Every needed category whose keywords occur in the offering's category name, in brief order."""
    haystack = (offering_category or "").lower()
    return [
        needed
        for needed in needed_categories
        if any(kw in haystack for kw in _keywords_for(needed, synonyms))
    ]


def _candidate_order(offering: Offering) -> tuple:
    # verified first, then cheapest, then id for a stable tie-break
    return (not offering.is_verified, offering.price_per_day, str(offering.offering_id))


def select(
    brief: EventBrief,
    catalog: CatalogQuery,
    synonyms: Optional[Mapping[str, Iterable[str]]] = None,
) -> ProposalDraft:
    """Build the initial proposal for a brief; its total never exceeds ``brief.budget_max``."""
    synonyms = settings.CATEGORY_SYNONYMS if synonyms is None else synonyms
    budget_max = brief.budget_max or 0
    needed = [c for c in dict.fromkeys(brief.services_needed or []) if c and c.strip()]
    draft = ProposalDraft(budget_max=budget_max)

    if not needed or budget_max <= 0:
        draft.unmatched_categories = list(needed)
        logger.info("Brief %s has no categories or budget — empty proposal", brief.brief_id)
        return draft

    offerings = catalog.list_active_offerings(OfferingFilter(max_price_per_day=budget_max))

    candidates: dict[str, list[Offering]] = {category: [] for category in needed}
    for offering in offerings:
        if (offering.quantity_available or 0) < 1:
            continue
        for category in matching_categories(offering.category, needed, synonyms):
            candidates[category].append(offering)

    running_total = 0
    chosen_ids: set[str] = set()
    for category, pool in candidates.items():
        chosen = next(
            (
                o for o in sorted(pool, key=_candidate_order)
                if str(o.offering_id) not in chosen_ids and running_total + o.price_per_day <= budget_max
            ),
            None,
        )
        if chosen is None:
            draft.unmatched_categories.append(category)
            continue
        draft.lines.append(DraftLine(
            offering_id=str(chosen.offering_id),
            offering_name=chosen.name,
            category=chosen.category,
            needed_category=category,
            supplier_id=str(chosen.supplier_id),
            price_per_day=chosen.price_per_day,
            is_verified=bool(chosen.is_verified),
            available_quantity=chosen.quantity_available,
        ))
        running_total += chosen.price_per_day
        chosen_ids.add(str(chosen.offering_id))

    logger.info(
        "Selected %d of %d categories for brief %s (total %d / budget %d)",
        len(draft.lines), len(needed), brief.brief_id, running_total, budget_max,
    )
    return draft
