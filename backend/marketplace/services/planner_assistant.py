"""Planner assistant — one-shot LLM advice on a proposal, grounded in the live catalog.

The model sees the brief, the current proposal and the active offerings, and
is asked to end its answer with a ``[RECOMMENDATIONS: {"products": [...]}]``
marker. Only ids of active offerings survive; the marker is stripped from the
text returned to the client.
"""
import json
import logging
import re
import time
from typing import Any, Optional

from openai import OpenAI
from sqlalchemy.orm import Session

from marketplace.config import settings
from marketplace.models.proposal import Proposal
from marketplace.services.catalog import OfferingFilter, SqlCatalog
from marketplace.services.proposal_service import to_draft

logger = logging.getLogger(__name__)

RECOMMENDATIONS_RE = re.compile(r"\[RECOMMENDATIONS:\s*(\{.*?\})\]", re.DOTALL)
MAX_CATALOG_LINES = 80

SYSTEM_PROMPT = """Tu es l'assistant d'une place de marché de location pour événements au Sénégal et en Afrique de l'Ouest.
Tu aides les organisateurs à ajuster leur proposition (mariages, baptêmes, anniversaires, etc.).

CONTEXTE DE L'ÉVÉNEMENT:
- Type d'événement: {event_type}
- Budget: {budget_min} - {budget_max} {currency}
- Nombre d'invités: {guest_count}
- Date: {event_date}
- Lieu: {event_location}
- Services demandés: {services}

PROPOSITION ACTUELLE (total {total} {currency}):
{proposal_lines}

PRODUITS ET SERVICES DISPONIBLES:
{catalog_lines}

INSTRUCTIONS:
1. Reste dans le budget quand c'est possible et signale tout dépassement.
2. Privilégie les prestataires vérifiés.
3. Quand tu recommandes des produits, termine ta réponse par:
   [RECOMMENDATIONS: {{"products": ["id1", "id2"]}}]
4. Réponds en français, de façon chaleureuse et concise."""


def get_openai_client() -> Optional[OpenAI]:
    """FastAPI dependency — None when no API key is configured."""
    if not settings.OPENAI_API_KEY or settings.OPENAI_API_KEY == "your-api-key-here":
        return None
    return OpenAI(api_key=settings.OPENAI_API_KEY)


def parse_recommendations(content: str) -> tuple[str, list[str]]:
    """Split model output into (clean text, recommended ids)."""
    match = RECOMMENDATIONS_RE.search(content or "")
    if not match:
        return (content or "").strip(), []
    try:
        ids = json.loads(match.group(1)).get("products", [])
    except (json.JSONDecodeError, AttributeError):
        ids = []
    cleaned = RECOMMENDATIONS_RE.sub("", content).strip()
    return cleaned, [str(i) for i in ids if i]


def build_system_prompt(db: Session, proposal: Proposal) -> str:
    brief = proposal.brief
    draft = to_draft(proposal)
    offerings = SqlCatalog(db).list_active_offerings(OfferingFilter())
    catalog_lines = "\n".join(
        f"- {o.name} ({o.category}) — {o.price_per_day} {settings.CURRENCY}/jour"
        f"{' ✅ Vérifié' if o.is_verified else ''} — ID: {o.offering_id}"
        for o in offerings[:MAX_CATALOG_LINES]
    ) or "Aucun produit disponible."
    proposal_lines = "\n".join(
        f"- {line.offering_name} ({line.category}) × {line.quantity}, {line.rental_days} jour(s): {line.subtotal}"
        for line in draft.lines
    ) or "Aucune ligne."
    return SYSTEM_PROMPT.format(
        event_type=brief.event_type.value if brief.event_type else "Non spécifié",
        budget_min=brief.budget_min or 0,
        budget_max=brief.budget_max,
        currency=settings.CURRENCY,
        guest_count=brief.guest_count or "Non spécifié",
        event_date=brief.event_date.isoformat() if brief.event_date else "Non spécifiée",
        event_location=brief.event_location or "Non spécifié",
        services=", ".join(brief.services_needed or []) or "Non spécifiés",
        total=draft.total,
        proposal_lines=proposal_lines,
        catalog_lines=catalog_lines,
    )


def advise(db: Session, proposal: Proposal, question: str, client: Optional[OpenAI]) -> dict[str, Any]:
    """Ask the model about a proposal; returns response text and recommended offering ids."""
    if client is None:
        logger.warning("OpenAI API key not configured — returning placeholder advice")
        return {
            "response": (
                "L'assistant n'est pas encore configuré. Vous pouvez tout de même modifier "
                "les quantités et les jours de location directement dans votre proposition."
            ),
            "recommended_offering_ids": [],
            "total_tokens": 0,
        }

    messages = [
        {"role": "system", "content": build_system_prompt(db, proposal)},
        {"role": "user", "content": question},
    ]
    start_time = time.time()
    try:
        response = client.chat.completions.create(model=settings.OPENAI_MODEL, messages=messages)
    except Exception as e:
        logger.error("LLM API error for proposal %s: %s", proposal.proposal_id, e)
        return {
            "response": "Le service d'assistance est momentanément indisponible. Veuillez réessayer.",
            "recommended_offering_ids": [],
            "total_tokens": 0,
        }

    content = response.choices[0].message.content or ""
    text, ids = parse_recommendations(content)
    active_ids = {o.offering_id for o in SqlCatalog(db).list_active_offerings(OfferingFilter())}
    recommended = [i for i in dict.fromkeys(ids) if i in active_ids]
    total_tokens = response.usage.total_tokens if response.usage else 0
    logger.info(
        "Assistant answered for proposal %s: %d recommendation(s), %d tokens, %dms",
        proposal.proposal_id, len(recommended), total_tokens, int((time.time() - start_time) * 1000),
    )
    return {"response": text, "recommended_offering_ids": recommended, "total_tokens": total_tokens}
