import logging
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from legal_research.core.config import Settings
from legal_research.services.citations import extract_case_number
from legal_research.services.classifier import classify
from legal_research.services.kanoon_client import IndianKanoonClient, gather_settled
from legal_research.services.scoring import court_label
from legal_research.services.text import extract_paragraph_number, strip_html, truncate_at_sentence

logger = logging.getLogger(__name__)

MAX_PRINCIPLES = 10
CONTEXT_CHARS = 150


class ExtractPrinciplesParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    document_id: str = Field(..., alias="documentId", min_length=1, description="Document ID from search results")
    search_terms: List[str] = Field(..., alias="searchTerms", min_length=1,
                                    description="Legal concepts or terms to extract")
    include_context: bool = Field(True, alias="includeContext", description="Include surrounding context")
    max_length: int = Field(1500, alias="maxLength", ge=200, le=5000,
                            description="Longest principle text before it is cut at a sentence boundary")


class LegalPrincipleFragment(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str
    paragraph: str
    legal_weight: str = Field(alias="legalWeight")
    confidence: float
    matched_categories: List[str] = Field(alias="matchedCategories")
    context: Optional[Dict[str, str]] = None
    citation: Dict[str, str]
    complete: bool
    source_term: str = Field(alias="sourceTerm")
    position: int
    weight_rank: int = Field(exclude=True)


def collect_fragments(terms: List[str], results: List[Any]) -> List[Tuple[str, str]]:
    """(term, fragment html) pairs in term order, dropping fragments already seen."""
    fragments: List[Tuple[str, str]] = []
    seen = set()
    for term, result in zip(terms, results):
        headline = (result or {}).get("headline") or []
        if isinstance(headline, str):
            headline = [headline]
        for fragment in headline:
            key = strip_html(fragment)
            if not key or key in seen:
                continue
            seen.add(key)
            fragments.append((term, fragment))
    return fragments


def build_principles(fragments: List[Tuple[str, str]], metadata: Dict[str, Any],
                     include_context: bool, max_length: int) -> List[LegalPrincipleFragment]:
    title = metadata.get("title") or "Untitled"
    case_number = extract_case_number(metadata)
    cleaned = [strip_html(f) for _, f in fragments]

    principles = []
    for index, (term, fragment) in enumerate(fragments):
        paragraph = extract_paragraph_number(fragment, index)
        truncated = truncate_at_sentence(cleaned[index], max_length)
        weight = classify(cleaned[index])

        context = None
        if include_context:
            context = {
                "before": cleaned[index - 1][-CONTEXT_CHARS:] if index > 0 else "",
                "after": cleaned[index + 1][:CONTEXT_CHARS] if index < len(cleaned) - 1 else "",
            }

        principles.append(LegalPrincipleFragment(
            text=truncated.text,
            paragraph=paragraph,
            legal_weight=weight.label,
            confidence=weight.confidence,
            matched_categories=weight.matched_categories,
            context=context,
            citation={
                "full": f"{title}, {case_number}, para {paragraph}",
                "short": f"{case_number}, para {paragraph}",
                "pinpoint": f"at para {paragraph}",
            },
            complete=truncated.complete,
            source_term=term,
            position=index,
            weight_rank=weight.rank,
        ))
    return principles


def rank_principles(principles: List[LegalPrincipleFragment], limit: int = MAX_PRINCIPLES) -> List[LegalPrincipleFragment]:
    """Strongest legal weight first; fragment order breaks ties."""
    return sorted(principles, key=lambda p: (p.weight_rank, p.position))[:limit]


async def extract_legal_principles(client: IndianKanoonClient, settings: Settings,
                                   params: ExtractPrinciplesParams) -> Dict[str, Any]:
    doc_id = params.document_id.strip()
    terms = [t for t in dict.fromkeys(t.strip() for t in params.search_terms) if t]

    settled = await gather_settled(
        [client.get_document_metadata(doc_id)] + [client.get_document_fragments(doc_id, t) for t in terms]
    )
    meta_result, fragment_results = settled[0], settled[1:]

    if all(not s.ok for s in settled):
        raise settled[0].error

    if meta_result.ok:
        metadata = meta_result.value or {}
    else:
        logger.warning(f"[PRINCIPLES] Metadata lookup failed for {doc_id}: {meta_result.error}")
        metadata = {"tid": doc_id}

    failed_terms = [t for t, s in zip(terms, fragment_results) if not s.ok]
    for term in failed_terms:
        logger.warning(f"[PRINCIPLES] Fragment lookup failed for term '{term}' in {doc_id}")

    fragments = collect_fragments(terms, [s.value for s in fragment_results])
    principles = rank_principles(build_principles(fragments, metadata, params.include_context, params.max_length))

    confidence = round(sum(p.confidence for p in principles) / len(principles), 2) if principles else 0.0
    return {
        "principles": [p.model_dump(by_alias=True, exclude_none=True) for p in principles],
        "documentMetadata": {
            "documentId": doc_id,
            "title": metadata.get("title"),
            "court": court_label(metadata) or None,
            "date": metadata.get("publishdate"),
            "totalFragments": len(fragments),
            "extractionConfidence": confidence,
            "failedTerms": failed_terms,
        },
    }
