import re
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from legal_research.core.config import CitationStyle, Settings
from legal_research.core.errors import KanoonError, describe_error
from legal_research.services.citations import (
    TYPO_CORRECTIONS,
    elements_from_metadata,
    first_party,
    format_citation,
    format_parties,
    validate_citation,
)
from legal_research.services.kanoon_client import IndianKanoonClient, gather_settled
from legal_research.services.scoring import court_label, publish_year

logger = logging.getLogger(__name__)

PRIMARY_CONFIDENCE = 0.95
PARALLEL_CONFIDENCE = 0.80
INCOMPLETE_CONFIDENCE = 0.5
FORMAT_FIX_CONFIDENCE = 0.9
SIMILAR_CASE_CONFIDENCE = 0.7
TYPO_CONFIDENCE = 0.9
SIMILAR_CASES = 3


class FormatCitationsParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    document_id: str = Field(..., alias="documentId", min_length=1, description="Document ID to format citation for")
    citation_style: Optional[CitationStyle] = Field(None, alias="citationStyle", description="Citation style to use")
    include_pinpoint: bool = Field(False, alias="includePinpoint", description="Include paragraph reference")
    paragraph: Optional[str] = Field(None, description="Paragraph number for pinpoint citation")


class VerifyCitationsParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    citations: List[str] = Field(..., min_length=1, description="List of citations to verify")
    suggest_corrections: bool = Field(True, alias="suggestCorrections", description="Provide correction suggestions")


async def find_parallel_citations(client: IndianKanoonClient, metadata: Dict[str, Any], doc_id: str) -> List[str]:
    """Citation strings other searches report for the same document.

    Three lookups (exact title, parties, first party with year) run
    concurrently; any that fail are ignored.
    """
    title = metadata.get("title") or ""
    parties = format_parties(title)
    year = publish_year(metadata)
    searches = [f'"{title[:50]}"', parties, f"{first_party(parties)} {year or ''}".strip()]

    settled = await gather_settled(client.search(q, 0) for q in searches if q.strip('" '))
    citations: List[str] = []
    for s in settled:
        if not s.ok:
            logger.debug(f"[CITATIONS] Parallel citation search failed: {s.error}")
            continue
        for doc in (s.value or {}).get("docs") or []:
            if str(doc.get("tid")) == str(doc_id) and doc.get("citation"):
                citations.append(doc["citation"])
    return list(dict.fromkeys(citations))


async def format_citations(client: IndianKanoonClient, settings: Settings,
                           params: FormatCitationsParams) -> Dict[str, Any]:
    doc_id = params.document_id.strip()
    metadata = await client.get_document_metadata(doc_id)
    style = params.citation_style or settings.citation_style

    paragraph = params.paragraph if params.include_pinpoint else None
    elements = elements_from_metadata(metadata, paragraph)
    formatted = format_citation(elements, style)
    parallel = await find_parallel_citations(client, metadata, doc_id)

    primary = {"style": style, "citation": formatted.full, "confidence": PRIMARY_CONFIDENCE}
    if elements.missing:
        logger.warning(f"[CITATIONS] Document {doc_id} citation is incomplete, missing: {elements.missing}")
        primary.update(confidence=INCOMPLETE_CONFIDENCE, complete=False, missing=elements.missing)

    return {
        "primary": primary,
        "parallel": [{"citation": c, "confidence": PARALLEL_CONFIDENCE} for c in parallel],
        "formatted": formatted.model_dump(by_alias=True, exclude_none=True),
        "metadata": {
            "documentId": doc_id,
            "title": metadata.get("title"),
            "court": court_label(metadata) or None,
            "date": metadata.get("publishdate"),
        },
    }


async def _search_or_empty(client: IndianKanoonClient, query: str) -> Dict[str, Any]:
    try:
        return await client.search(query, 0)
    except KanoonError as e:
        logger.warning(f"[CITATIONS] Lookup failed for {query!r}: {e}")
        return {"docs": []}


async def verify_one(client: IndianKanoonClient, citation: str, suggest_corrections: bool) -> Dict[str, Any]:
    validation = validate_citation(citation)
    found = await client.search(f'cite:"{citation.strip()}"', 0)
    docs = found.get("docs") or []
    is_valid = bool(docs)

    suggestions: List[Dict[str, Any]] = []
    if not is_valid and suggest_corrections:
        if validation.suggestion:
            suggestions.append({
                "corrected": validation.suggestion,
                "confidence": FORMAT_FIX_CONFIDENCE,
                "reason": "Format correction",
            })

        cleaned = re.sub(r"[^\w\s]", " ", citation)
        cleaned = re.sub(r"\s+", " ", cleaned).strip()
        if cleaned:
            similar = (await _search_or_empty(client, cleaned)).get("docs") or []
            for doc in similar[:SIMILAR_CASES]:
                year = publish_year(doc) or ""
                suggestions.append({
                    "corrected": doc.get("citation") or f"{year} {court_label(doc)}".strip(),
                    "confidence": SIMILAR_CASE_CONFIDENCE,
                    "reason": "Similar case found",
                    "documentId": str(doc.get("tid")),
                })

        for typo in TYPO_CORRECTIONS:
            if typo.pattern.search(citation):
                suggestions.append({
                    "corrected": typo.pattern.sub(typo.replacement, citation),
                    "confidence": TYPO_CONFIDENCE,
                    "reason": typo.reason,
                })

    errors = []
    if not is_valid:
        errors.append("Citation not found in database")
        if not validation.is_valid:
            errors.append("Invalid citation format")

    return {
        "citation": citation,
        "status": "VALID" if is_valid else "INVALID",
        "confidence": 1.0 if is_valid else 0.0,
        "formatValid": validation.is_valid,
        "formatType": validation.format,
        "documentFound": {
            "id": str(docs[0].get("tid")),
            "title": docs[0].get("title"),
            "exactMatch": True,
        } if is_valid else None,
        "errors": errors,
        "suggestions": suggestions,
    }


async def verify_citations(client: IndianKanoonClient, settings: Settings,
                           params: VerifyCitationsParams) -> Dict[str, Any]:
    settled = await gather_settled(verify_one(client, c, params.suggest_corrections) for c in params.citations)
    if all(not s.ok for s in settled):
        raise settled[0].error
    results = []
    for citation, s in zip(params.citations, settled):
        if s.ok:
            results.append(s.value)
            continue
        logger.error(f"[CITATIONS] Verification of {citation!r} failed: {s.error}")
        results.append({
            "citation": citation,
            "status": "UNVERIFIED",
            "confidence": 0.0,
            "formatValid": validate_citation(citation).is_valid,
            "formatType": None,
            "documentFound": None,
            "errors": [describe_error(s.error, "citation verification")],
            "suggestions": [],
        })
    return {
        "validationResults": results,
        "summary": {
            "totalChecked": len(params.citations),
            "valid": sum(1 for r in results if r["status"] == "VALID"),
            "invalid": sum(1 for r in results if r["status"] == "INVALID"),
            "unverified": sum(1 for r in results if r["status"] == "UNVERIFIED"),
            "correctable": sum(1 for r in results if r["suggestions"]),
            "formatIssues": sum(1 for r in results if not r["formatValid"]),
        },
    }
