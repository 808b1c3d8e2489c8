import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from legal_research.core.config import CourtChoice, Settings
from legal_research.services.kanoon_client import IndianKanoonClient, gather_settled, merge_documents
from legal_research.services.query import ProcessedQuery, process_query
from legal_research.services.scoring import ScoredCase, apply_threshold, court_label, rank_documents
from legal_research.services.text import strip_html

logger = logging.getLogger(__name__)

# Below this many primary hits the query variants are searched too.
MIN_PRIMARY_RESULTS = 5
SUMMARY_CHARS = 200

COURT_DOCTYPES: Dict[str, str] = {
    "supremecourt": "supremecourt",
    "delhi": "delhihighcourt",
    "bombay": "bombayhighcourt",
    "madras": "madrashighcourt",
    "calcutta": "calcuttahighcourt",
}

COURT_POST_FILTERS: Dict[str, tuple] = {
    "supremecourt": ("supreme court", "apex"),
    "delhi": ("delhi high court", "delhi hc", "delhi"),
    "bombay": ("bombay high court", "bombay hc", "bombay", "mumbai"),
    "madras": ("madras high court", "madras hc", "madras", "chennai"),
    "calcutta": ("calcutta high court", "calcutta hc", "calcutta", "kolkata"),
}


class SearchPrecedentsParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(..., min_length=1, description="Search query for legal precedents")
    court_level: Optional[CourtChoice] = Field(None, alias="courtLevel", description="Filter by court level")
    date_from: Optional[str] = Field(None, alias="dateFrom", description="Start date in DD-MM-YYYY format")
    date_to: Optional[str] = Field(None, alias="dateTo", description="End date in DD-MM-YYYY format")
    max_results: Optional[int] = Field(None, alias="maxResults", ge=1, le=100,
                                       description="Maximum results to return")
    min_relevance: float = Field(0.0, alias="minRelevance", ge=0,
                                 description="Drop cases scoring below this (falls back to best available)")


def build_filters(court: Optional[str], date_from: Optional[str], date_to: Optional[str]) -> Dict[str, str]:
    filters: Dict[str, str] = {}
    doctype = COURT_DOCTYPES.get(court or "all")
    if doctype:
        filters["doctypes"] = doctype
    if date_from:
        filters["fromdate"] = date_from
    if date_to:
        filters["todate"] = date_to
    return filters


def filter_by_court(docs: List[Dict[str, Any]], court: Optional[str]) -> List[Dict[str, Any]]:
    accepted = COURT_POST_FILTERS.get(court or "all")
    if not accepted:
        return docs
    kept = []
    for doc in docs:
        label = f"{doc.get('docsource') or ''} {court_label(doc)}".lower()
        if any(a in label for a in accepted):
            kept.append(doc)
    return kept


def format_case(case: ScoredCase) -> Dict[str, Any]:
    doc = case.doc
    headline = strip_html(doc.get("headline") or "")
    return {
        "id": str(doc.get("tid")),
        "title": doc.get("title"),
        "court": court_label(doc) or "Unknown Court",
        "courtType": case.court_type,
        "year": str(case.year) if case.year else "Unknown",
        "relevanceScore": round(case.score, 2),
        "summary": f"{headline[:SUMMARY_CHARS]}..." if headline else "No summary available",
        "citations": [doc["citation"]] if doc.get("citation") else [],
        "citedByCount": doc.get("numcitedby") or 0,
        "matchedSections": case.matched_sections,
        "matchedConcepts": case.matched_concepts,
        "belowThreshold": case.below_threshold,
    }


def _corrected_query(processed: ProcessedQuery) -> Optional[str]:
    text = processed.normalized
    changed = False
    for ref in processed.invalid_sections:
        if ref.suggestions:
            text = text.replace(ref.token, ref.suggestions[0], 1)
            changed = True
    return text if changed else None


def diagnose_empty(processed: ProcessedQuery, filters: Dict[str, str], unfiltered_count: int,
                   tried: List[str]) -> Dict[str, Any]:
    """Explain an empty result and offer at least one query worth trying next."""
    if processed.invalid_sections:
        reason = "invalid_section_reference"
        message = "; ".join(processed.warnings())
    elif unfiltered_count or filters:
        reason = "filters_too_narrow"
        message = (
            f"{unfiltered_count} cases matched before the court filter was applied"
            if unfiltered_count else
            f"No cases matched with filters: {', '.join(f'{k}={v}' for k, v in filters.items())}"
        )
    elif len(processed.significant_words) > 5 or '"' in processed.original:
        reason = "query_too_specific"
        message = "The query is very specific. Try fewer terms or drop exact-phrase quotes."
    else:
        reason = "no_matching_documents"
        message = "IndianKanoon returned no documents for this query."

    alternatives: List[str] = []
    corrected = _corrected_query(processed)
    if corrected:
        alternatives.append(corrected)
    if processed.concepts:
        alternatives.append(" ANDD ".join(f'"{c}"' for c in processed.concepts))
    for ref in processed.sections:
        if ref.valid:
            alternatives.append(f'"Section {ref.token}" {ref.code}')
    if processed.significant_words:
        alternatives.append(" ".join(processed.significant_words[:3]))
    alternatives.extend(v for v in processed.variants if v not in tried)
    if filters:
        alternatives.append(processed.normalized)

    alternatives = [a for a in dict.fromkeys(alternatives) if a and a.strip()]
    if not alternatives:
        alternatives.append(processed.normalized.strip('"') or "Supreme Court judgment")

    return {
        "reason": reason,
        "message": message,
        "alternativeQueries": alternatives[:5],
        "sectionSuggestions": {ref.label: list(ref.suggestions) for ref in processed.invalid_sections},
    }


async def search_legal_precedents(client: IndianKanoonClient, settings: Settings,
                                  params: SearchPrecedentsParams) -> Dict[str, Any]:
    processed = process_query(params.query)
    court = params.court_level or settings.default_court
    filters = build_filters(court, params.date_from, params.date_to)
    limit = params.max_results or settings.max_search_results

    tried = [params.query]
    settled = await gather_settled([client.search(params.query, 0, filters)])
    primary_docs = merge_documents([settled[0].value]) if settled[0].ok else []

    if len(primary_docs) < MIN_PRIMARY_RESULTS:
        variants = [v for v in processed.variants if v not in tried]
        if variants:
            logger.info(f"[SEARCH] {len(primary_docs)} primary hits; trying {len(variants)} variants")
            _, variant_settled = await client.search_multiple_variants(variants, filters)
            tried.extend(variants)
            settled.extend(variant_settled)

    failures = [s.error for s in settled if not s.ok]
    if len(failures) == len(settled):
        raise failures[0]
    for err in failures:
        logger.warning(f"[SEARCH] A search variant failed: {err}")

    docs = merge_documents(s.value for s in settled if s.ok)
    filtered = filter_by_court(docs, court)
    ranked = rank_documents(filtered, processed)
    cases, low_confidence = apply_threshold(ranked, params.min_relevance, limit)

    response: Dict[str, Any] = {
        "cases": [format_case(c) for c in cases],
        "totalResults": len(filtered),
        "searchMetadata": {
            "queryUsed": params.query,
            "normalizedQuery": processed.normalized,
            "variantsTried": tried,
            "filtersApplied": [f"{k}: {v}" for k, v in filters.items()],
            "failedSearches": len(failures),
        },
        "warnings": processed.warnings(),
        "lowConfidence": low_confidence,
    }
    if low_confidence:
        response["note"] = (
            f"No case reached the relevance threshold of {params.min_relevance}; "
            "showing the best available matches instead."
        )
    if not cases:
        response["diagnostic"] = diagnose_empty(processed, filters, len(docs), tried)
    return response
