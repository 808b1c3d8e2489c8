import re
from datetime import datetime
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from legal_research.core.config import CitationStyle
from legal_research.services.scoring import court_label

CITATION_STYLES: Tuple[str, ...] = ("AIR", "SCC", "Neutral", "SCC OnLine")

_VERSUS = re.compile(r"(.+?)\s+(?:vs\.?|versus)\s+(.+?)(?:\s+on\s+|\s*$)", re.IGNORECASE)
# Bare "v." never follows a lone initial, so "K. V. Rao" stays one party.
_BARE_V = re.compile(r"(.+?)(?<!\b[A-Z]\.)\s+v\.?\s+(.+?)(?:\s+on\s+|\s*$)", re.IGNORECASE)
_YEAR_IN_TEXT = re.compile(r"\b((?:19|20)\d{2})\b")
YEAR_PLACEHOLDER = "[Year]"

# Substring of the court label -> reporter abbreviation. First hit wins.
COURT_ABBREVIATIONS: Tuple[Tuple[str, str], ...] = (
    ("supreme", "SC"),
    ("delhi", "Del"),
    ("bombay", "Bom"),
    ("madras", "Mad"),
    ("calcutta", "Cal"),
    ("karnataka", "Kar"),
    ("kerala", "Ker"),
    ("punjab", "PH"),
    ("allahabad", "All"),
    ("gujarat", "Guj"),
    ("rajasthan", "Raj"),
    ("patna", "Pat"),
    ("orissa", "Ori"),
    ("gauhati", "Gau"),
    ("telangana", "TS"),
    ("andhra", "AP"),
)
DEFAULT_COURT_ABBREVIATION = "HC"

_YEAR = r"(?:19|20)\d{2}"
# One or two capitalised words: "SC", "Del", "Del HC".
_REPORTER_COURT = r"[A-Z][A-Za-z]*(?:\s+[A-Z][A-Za-z]*)?"
CITATION_PATTERNS: Dict[str, re.Pattern] = {
    "AIR": re.compile(rf"^\(?{_YEAR}\)?\s+AIR\s+(?:{_REPORTER_COURT}\s+)?\d+$"),
    "SCC": re.compile(rf"^\(?{_YEAR}\)?\s+(?:\d+\s+)?SCC\s+\d+$"),
    "SCC OnLine": re.compile(rf"^{_YEAR}\s+SCC\s+OnLine\s+{_REPORTER_COURT}\s+\d+$"),
    "SCCOnLine": re.compile(rf"^{_YEAR}\s+SCCOnLine\s+{_REPORTER_COURT}\s+\d+$"),
    "Neutral": re.compile(rf"^{_YEAR}\s+IN[A-Z]{{2,4}}\s+\d+$"),
}


class TypoCorrection(NamedTuple):
    pattern: re.Pattern
    replacement: str
    reason: str


TYPO_CORRECTIONS: Tuple[TypoCorrection, ...] = (
    TypoCorrection(re.compile(r"\bDell\b"), "Del", "Common typo in court abbreviation"),
    TypoCorrection(re.compile(r"Bomaby"), "Bombay", "Spelling correction"),
    TypoCorrection(re.compile(r"Supeme"), "Supreme", "Spelling correction"),
    TypoCorrection(re.compile(r"Calcuta\b"), "Calcutta", "Spelling correction"),
    TypoCorrection(re.compile(r"Madrs"), "Madras", "Spelling correction"),
    TypoCorrection(re.compile(r"\bSupreme Court\b"), "SC", "Court name abbreviated"),
    TypoCorrection(re.compile(r"\bHigh Court\b"), "HC", "Court name abbreviated"),
    TypoCorrection(re.compile(r"\bSCC Online\b"), "SCC OnLine", "Reporter name capitalisation"),
)


class CitationElements(BaseModel):
    parties: str
    court: str
    year: str
    case_number: str
    paragraph: Optional[str] = None
    # Elements that could not be recovered and carry a placeholder.
    missing: List[str] = Field(default_factory=list)


class FormattedCitation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    style: str
    citation: str
    full: str
    short: str
    in_text: str = Field(alias="inText")
    footnote: str
    bibliography: str
    pinpoint: Optional[str] = None


class CitationValidation(NamedTuple):
    is_valid: bool
    format: Optional[str] = None
    suggestion: Optional[str] = None


def extract_parties(title: Optional[str]) -> Optional[Tuple[str, str]]:
    text = (title or "").strip()
    m = _VERSUS.match(text) or _BARE_V.match(text)
    if not m:
        return None
    return m.group(1).strip(), m.group(2).strip()


def format_parties(title: Optional[str]) -> str:
    """'A vs B on 3 May, 2020' -> 'A v. B'. Titles without a versus marker come back unchanged."""
    parties = extract_parties(title)
    if parties is None:
        return (title or "").strip()
    return f"{parties[0]} v. {parties[1]}"


def first_party(parties: str) -> str:
    return parties.split(" v.")[0].strip()


def extract_case_number(metadata: Dict[str, Any]) -> str:
    caseno = metadata.get("caseno")
    if caseno:
        return str(caseno)

    relurl = metadata.get("relurl") or ""
    if relurl:
        last = relurl.rstrip("/").split("/")[-1]
        if last and re.search(r"[A-Z]", last) and "." not in last:
            return last
        m = re.search(r"([A-Z]+[\s\-]*\d+[\s\-]*(?:of|/)?\s*\d{4})", relurl, re.IGNORECASE)
        if m:
            return m.group(1)

    title = metadata.get("title") or ""
    for pattern in (
        r"Case No[.\s:]*([A-Z]+[\s\-]*\d+[\s\-]*(?:of|/)\s*\d{4})",
        r"\(([A-Z]+[\s\-]*\d+[\s\-]*(?:of|/)\s*\d{4})\)",
        r"\bNo[.\s:]*(\d+[\s\-]*(?:of|/)\s*\d{4})",
    ):
        m = re.search(pattern, title, re.IGNORECASE)
        if m:
            return m.group(1)

    if metadata.get("tid") is not None:
        return str(metadata["tid"])
    return f"[No. {datetime.now().year}]"


def court_abbreviation(court: Optional[str]) -> str:
    label = (court or "").lower()
    for marker, abbr in COURT_ABBREVIATIONS:
        if marker in label:
            return abbr
    return DEFAULT_COURT_ABBREVIATION


def citation_number(case_number: str) -> str:
    """Reporter page/serial: the first digit run of the case number."""
    m = re.search(r"\d+", case_number or "")
    return m.group() if m else "1"


def bare_citation(elements: CitationElements, style: CitationStyle) -> str:
    abbr = court_abbreviation(elements.court)
    number = citation_number(elements.case_number)
    if style == "AIR":
        return f"{elements.year} AIR {abbr} {number}"
    if style == "SCC":
        return f"({elements.year}) SCC {number}"
    if style == "Neutral":
        return f"{elements.year} IN{abbr.upper()} {number}"
    if style == "SCC OnLine":
        return f"{elements.year} SCC OnLine {abbr} {number}"
    raise ValueError(f"Unsupported citation style: {style}")


def format_citation(elements: CitationElements, style: CitationStyle) -> FormattedCitation:
    citation = bare_citation(elements, style)
    abbr = court_abbreviation(elements.court)
    party = first_party(elements.parties)

    if style == "SCC":
        full = f"{elements.parties} {citation}"
        short = f"{party} ({elements.year}) SCC"
    else:
        full = f"{elements.parties}, {citation}"
        if style == "AIR":
            short = f"{elements.year} AIR {abbr}"
        elif style == "Neutral":
            short = f"{elements.year} IN{abbr.upper()}"
        else:
            short = f"{elements.year} SCC OnLine {abbr}"

    return FormattedCitation(
        style=style,
        citation=citation,
        full=full,
        short=short,
        in_text=f"({party}, {elements.year})",
        footnote=f"{full} ({elements.court})",
        bibliography=f"{elements.parties} ({elements.year}). {elements.court}. {full}.",
        pinpoint=f"{full}, ¶ {elements.paragraph}" if elements.paragraph else None,
    )


def citation_year(metadata: Dict[str, Any]) -> Optional[str]:
    """Publication year, falling back to a year named in the title or case number."""
    m = re.match(r"\s*(\d{4})", str(metadata.get("publishdate") or ""))
    if m:
        return m.group(1)
    for source in (metadata.get("title"), metadata.get("caseno")):
        found = _YEAR_IN_TEXT.findall(str(source or ""))
        if found:
            return found[-1]
    return None


def elements_from_metadata(metadata: Dict[str, Any], paragraph: Optional[str] = None) -> CitationElements:
    year = citation_year(metadata)
    return CitationElements(
        parties=format_parties(metadata.get("title")) or "Unknown Parties",
        court=court_label(metadata) or "Unknown Court",
        year=year or YEAR_PLACEHOLDER,
        case_number=extract_case_number(metadata),
        paragraph=paragraph,
        missing=[] if year else ["year"],
    )


def apply_typo_corrections(citation: str) -> Tuple[str, List[TypoCorrection]]:
    corrected = citation
    applied = []
    for typo in TYPO_CORRECTIONS:
        if typo.pattern.search(corrected):
            corrected = typo.pattern.sub(typo.replacement, corrected)
            applied.append(typo)
    return corrected, applied


def validate_citation(citation: str) -> CitationValidation:
    cleaned = (citation or "").strip()
    for style, pattern in CITATION_PATTERNS.items():
        if pattern.match(cleaned):
            return CitationValidation(True, style)

    suggested, applied = apply_typo_corrections(cleaned)
    return CitationValidation(False, None, suggested if applied and suggested != cleaned else None)
