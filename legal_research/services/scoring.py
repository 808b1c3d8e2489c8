import re
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, Field

from legal_research.services.query import ProcessedQuery
from legal_research.services.text import strip_html

logger = logging.getLogger(__name__)

COURT_WEIGHTS: Dict[str, float] = {
    "supreme": 1.5,
    "high": 1.2,
    "district": 1.0,
    "tribunal": 0.9,
    "commission": 1.0,
    "other": 1.0,
}

# Checked in order; first hit decides.
COURT_MARKERS: List[Tuple[str, Tuple[str, ...]]] = [
    ("supreme", ("supreme", "apex")),
    ("high", ("high court", "hc")),
    ("district", ("district", "sessions")),
    ("tribunal", ("tribunal", "appellate")),
    ("commission", ("commission",)),
    ("high", ("delhi", "bombay", "madras", "calcutta", "karnataka", "kerala",
              "punjab", "gujarat", "rajasthan", "allahabad", "patna", "orissa",
              "gauhati", "telangana", "andhra", "jharkhand", "chhattisgarh", "uttarakhand")),
]

RECENCY_YEARS = 2
RECENCY_BONUS = 1.3
CITED_BY_HIGH = (20, 1.4)
CITED_BY_MID = (10, 1.2)
SECTION_MATCH_WEIGHT = 0.4
CONCEPT_MATCH_WEIGHT = 0.3
WORD_MATCH_WEIGHT = 0.2
MISSING_SECTION_PENALTY = 0.5
MULTI_QUERY_BOOST = 0.2


class ScoredCase(BaseModel):
    doc: Dict[str, Any]
    score: float
    court_type: str
    matched_sections: List[str] = Field(default_factory=list)
    matched_concepts: List[str] = Field(default_factory=list)
    query_hits: int = 1
    below_threshold: bool = False

    @property
    def tid(self) -> Any:
        return self.doc.get("tid")

    @property
    def year(self) -> Optional[int]:
        return publish_year(self.doc)


def court_label(doc: Dict[str, Any]) -> str:
    doctype = doc.get("doctype")
    if isinstance(doctype, str) and doctype.strip():
        return doctype
    return doc.get("docsource") or ""


def identify_court(doc: Dict[str, Any]) -> str:
    label = court_label(doc).lower()
    for court_type, markers in COURT_MARKERS:
        if any(m in label for m in markers):
            return court_type
    return "other"


def publish_year(doc: Dict[str, Any]) -> Optional[int]:
    m = re.match(r"\s*(\d{4})", str(doc.get("publishdate") or ""))
    return int(m.group(1)) if m else None


def base_score(doc: Dict[str, Any], current_year: Optional[int] = None) -> float:
    """Court, recency and citation multipliers on a running score of 1.0."""
    score = 1.0
    score *= COURT_WEIGHTS[identify_court(doc)]

    year = publish_year(doc)
    current_year = current_year or datetime.now().year
    if year and current_year - year <= RECENCY_YEARS:
        score *= RECENCY_BONUS

    cited_by = doc.get("numcitedby") or 0
    if cited_by > CITED_BY_HIGH[0]:
        score *= CITED_BY_HIGH[1]
    elif cited_by > CITED_BY_MID[0]:
        score *= CITED_BY_MID[1]
    return score


def _document_text(doc: Dict[str, Any]) -> str:
    return f"{doc.get('title') or ''} {strip_html(doc.get('headline') or '')}".lower()


def query_match(doc: Dict[str, Any], query: ProcessedQuery) -> Tuple[float, List[str], List[str]]:
    """Multiplier for how well the document text covers the query, plus what matched."""
    text = _document_text(doc)
    factor = 1.0

    matched_sections: List[str] = []
    if query.sections:
        for s in query.sections:
            if re.search(rf"\b{re.escape(s.token.lower())}\b", text):
                matched_sections.append(s.token)
        factor *= 1 + SECTION_MATCH_WEIGHT * (len(matched_sections) / len(query.sections))

    matched_concepts: List[str] = []
    if query.concepts:
        for c in query.concepts:
            if re.search(r"\b" + r"[\s-]+".join(re.escape(w) for w in c.lower().split()) + r"\b", text):
                matched_concepts.append(c)
        factor *= 1 + CONCEPT_MATCH_WEIGHT * (len(matched_concepts) / len(query.concepts))

    if query.significant_words:
        hits = sum(1 for w in query.significant_words if re.search(rf"\b{re.escape(w)}\b", text))
        factor *= 1 + WORD_MATCH_WEIGHT * (hits / len(query.significant_words))

    if query.sections and not matched_sections:
        factor *= MISSING_SECTION_PENALTY

    return factor, matched_sections, matched_concepts


def score_document(doc: Dict[str, Any], query: Optional[ProcessedQuery] = None,
                   current_year: Optional[int] = None) -> ScoredCase:
    score = base_score(doc, current_year)
    sections: List[str] = []
    concepts: List[str] = []
    if query is not None:
        factor, sections, concepts = query_match(doc, query)
        score *= factor
    return ScoredCase(
        doc=doc,
        score=score,
        court_type=identify_court(doc),
        matched_sections=sections,
        matched_concepts=concepts,
    )


def rank_documents(docs: Iterable[Dict[str, Any]], query: Optional[ProcessedQuery] = None,
                   current_year: Optional[int] = None,
                   query_hits: Optional[Dict[Any, int]] = None) -> List[ScoredCase]:
    """Score and sort, highest first. `sorted` is stable, so ties keep input order."""
    scored = []
    for doc in docs:
        case = score_document(doc, query, current_year)
        if query_hits:
            hits = query_hits.get(case.tid, 1)
            case.query_hits = hits
            case.score *= 1 + (hits - 1) * MULTI_QUERY_BOOST
        scored.append(case)
    return sorted(scored, key=lambda c: c.score, reverse=True)


def apply_threshold(ranked: List[ScoredCase], threshold: float, limit: int) -> Tuple[List[ScoredCase], bool]:
    """Keep cases scoring at least `threshold`.

    When that would leave nothing, the best `limit` cases come back marked
    `below_threshold` and the second element is True.
    """
    kept = [c for c in ranked if c.score >= threshold]
    if kept or not ranked:
        return kept[:limit], False

    logger.info(f"[SCORING] No case met threshold {threshold:.2f}; returning best {min(limit, len(ranked))}")
    fallback = [c.model_copy(update={"below_threshold": True}) for c in ranked[:limit]]
    return fallback, True
