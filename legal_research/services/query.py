"""Turn a free-text legal query into a structured search plan.

Everything here is pure: no I/O, same input gives the same `ProcessedQuery`.
IndianKanoon's boolean operators are spelled ANDD / ORR / NOTT.
"""
import re
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

CODE_RANGES: Dict[str, Tuple[int, int]] = {
    "IPC": (1, 511),
    "BNS": (1, 358),
    "CrPC": (1, 484),
}
DEFAULT_CODE = "IPC"

_CODE_ALIASES = [
    ("IPC", r"I\.?\s?P\.?\s?C\.?|Indian\s+Penal\s+Code"),
    ("BNS", r"B\.?N\.?S\.?(?!S)|Bharatiya\s+Nyaya\s+Sanhita"),
    ("CrPC", r"Cr\.?\s?P\.?\s?C\.?|Code\s+of\s+Criminal\s+Procedure"),
]
_ANY_CODE = r"(?<![A-Za-z])(?:" + "|".join(alias for _, alias in _CODE_ALIASES) + r")(?![A-Za-z])"
_CODE_RE = re.compile(
    r"(?<![A-Za-z])(?:" + "|".join(f"(?P<{code}>{alias})" for code, alias in _CODE_ALIASES) + r")(?![A-Za-z])",
    re.IGNORECASE,
)
_CODE_AFTER = re.compile(r"\s*(?:of\s+(?:the\s+)?)?" + _ANY_CODE, re.IGNORECASE)

_SECTION_TOKEN = r"\d+[A-Z]?"
_SECTION_LIST = re.compile(
    r"\b(?:sections?|secs?\.?|s\.|under\s+section|read\s+with)\s*"
    rf"({_SECTION_TOKEN}(?:\s*(?:,|and|&|/)\s*{_SECTION_TOKEN})*)\b",
    re.IGNORECASE,
)
_SECTION_WITH_CODE = re.compile(
    rf"\b({_SECTION_TOKEN})\s+(?=(?:of\s+(?:the\s+)?)?{_ANY_CODE})",
    re.IGNORECASE,
)

# Out-of-range numbers people commonly type, per code, and what they meant.
COMMON_SECTION_TYPOS: Dict[str, Dict[int, List[str]]] = {
    "IPC": {
        823: ["323"], 832: ["323"], 702: ["302"], 602: ["302"], 3020: ["302"],
        3070: ["307"], 4200: ["420"], 720: ["420"], 4980: ["498A"], 5060: ["506"],
        3760: ["376"], 876: ["376"], 3540: ["354"], 534: ["354"], 1200: ["120B"],
        3400: ["34"], 3230: ["323"], 3240: ["324"], 4060: ["406"],
    },
    "BNS": {
        # IPC numbers quoted against the new code.
        420: ["318"], 376: ["64"], 498: ["85", "86"], 406: ["316"], 506: ["351"],
        379: ["303"], 363: ["137"], 364: ["140"], 304: ["105", "106"], 354: ["74"],
    },
    "CrPC": {
        4820: ["482"], 528: ["482"], 4380: ["438"], 4390: ["439"], 1560: ["156"],
        1730: ["173"], 3200: ["320"], 1250: ["125"], 4370: ["437"],
    },
}
NEARBY_WINDOW = 3

LEGAL_CONCEPTS = [
    "anticipatory bail", "bail", "quashing", "compromise", "mens rea",
    "common intention", "common object", "prima facie", "criminal conspiracy",
    "culpable homicide", "murder", "grievous hurt", "hurt", "cheating",
    "criminal breach of trust", "dowry", "cruelty", "defamation", "sexual assault",
    "rape", "kidnapping", "extortion", "forgery", "theft", "robbery", "dacoity",
    "self defence", "private defence", "dying declaration", "circumstantial evidence",
    "last seen", "confession", "eyewitness", "cognizable", "non-bailable", "FIR",
    "charge sheet", "discharge", "acquittal", "conviction", "sentence", "remand",
    "custody", "arrest", "limitation", "specific performance", "injunction",
    "maintenance", "divorce", "habeas corpus", "natural justice", "money laundering",
    "narcotics",
]
_CONCEPT_PATTERNS = [
    (c, re.compile(r"\b" + r"[\s-]+".join(re.escape(w) for w in c.split()) + r"\b", re.IGNORECASE))
    for c in LEGAL_CONCEPTS
]

_ABBREVIATIONS = [
    (re.compile(r"\bu/s\.?\s*", re.IGNORECASE), "under Section "),
    (re.compile(r"\br/w\b\.?", re.IGNORECASE), "read with"),
    (re.compile(r"\bw\.r\.t\.?", re.IGNORECASE), "with respect to"),
    (re.compile(r"\bsecs?\.?\s*(?=\d)", re.IGNORECASE), "Section "),
]

STOPWORDS = {
    "about", "above", "after", "against", "also", "been", "before", "being", "case", "cases",
    "court", "does", "from", "have", "into", "judgment", "judgments", "law", "laws", "legal",
    "more", "only", "other", "over", "read", "section", "sections", "some", "such", "than",
    "that", "their", "them", "then", "there", "these", "they", "this", "under", "upon",
    "what", "when", "where", "which", "while", "will", "with", "within", "would",
}


class SectionReference(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str
    number: int
    code: str
    valid: bool
    suggestions: Tuple[str, ...] = ()

    @property
    def label(self) -> str:
        return f"Section {self.token} {self.code}"


class ProcessedQuery(BaseModel):
    model_config = ConfigDict(frozen=True)

    original: str
    normalized: str
    sections: Tuple[SectionReference, ...] = ()
    concepts: Tuple[str, ...] = ()
    significant_words: Tuple[str, ...] = ()
    variants: Tuple[str, ...] = ()

    @property
    def invalid_sections(self) -> List[SectionReference]:
        return [s for s in self.sections if not s.valid]

    def warnings(self) -> List[str]:
        out = []
        for s in self.invalid_sections:
            low, high = CODE_RANGES[s.code]
            msg = f"Section {s.token} is outside the valid range for {s.code} ({low}-{high})"
            if s.suggestions:
                msg += f"; did you mean {', '.join(s.suggestions)}?"
            out.append(msg)
        return out


def _detect_code(text: str, end: int) -> Optional[str]:
    m = _CODE_AFTER.match(text, end)
    if not m:
        return None
    code_match = _CODE_RE.search(m.group())
    return code_match.lastgroup if code_match else None


def _first_code_mentioned(text: str) -> Optional[str]:
    m = _CODE_RE.search(text)
    return m.lastgroup if m else None


def suggest_sections(number: int, code: str) -> List[str]:
    """Corrections for an out-of-range section: typo table, leading digit dropped, neighbours."""
    low, high = CODE_RANGES[code]
    suggestions: List[str] = list(COMMON_SECTION_TYPOS.get(code, {}).get(number, []))

    digits = str(number)
    if len(digits) > 1:
        stripped = int(digits[1:])
        if low <= stripped <= high:
            suggestions.append(str(stripped))

    for offset in range(1, NEARBY_WINDOW + 1):
        for candidate in (number - offset, number + offset):
            if low <= candidate <= high:
                suggestions.append(str(candidate))

    return list(dict.fromkeys(suggestions))


def validate_section(token: str, code: str) -> SectionReference:
    number = int(re.match(r"\d+", token).group())
    low, high = CODE_RANGES[code]
    valid = low <= number <= high
    return SectionReference(
        token=token.upper(),
        number=number,
        code=code,
        valid=valid,
        suggestions=() if valid else tuple(suggest_sections(number, code)),
    )


def extract_sections(text: str) -> List[SectionReference]:
    """Section references in order of appearance, one per (token, code)."""
    fallback_code = _first_code_mentioned(text) or DEFAULT_CODE
    found: List[Tuple[int, str, str]] = []

    for m in _SECTION_LIST.finditer(text):
        code = _detect_code(text, m.end()) or fallback_code
        for tok in re.finditer(_SECTION_TOKEN, m.group(1), re.IGNORECASE):
            found.append((m.start(1) + tok.start(), tok.group(), code))

    for m in _SECTION_WITH_CODE.finditer(text):
        code = _detect_code(text, m.end(1)) or fallback_code
        found.append((m.start(1), m.group(1), code))

    found.sort(key=lambda item: item[0])
    refs: List[SectionReference] = []
    seen = set()
    for _, token, code in found:
        key = (token.upper(), code)
        if key in seen:
            continue
        seen.add(key)
        refs.append(validate_section(token, code))
    return refs


def extract_concepts(text: str) -> List[str]:
    return [concept for concept, pattern in _CONCEPT_PATTERNS if pattern.search(text)]


def normalize_query(text: str) -> str:
    out = text or ""
    for pattern, replacement in _ABBREVIATIONS:
        out = pattern.sub(replacement, out)
    return re.sub(r"\s+", " ", out).strip()


def significant_words(text: str) -> List[str]:
    words = re.findall(r"[A-Za-z0-9]+", text.lower())
    return list(dict.fromkeys(w for w in words if len(w) > 3 and w not in STOPWORDS))


def _quote(term: str) -> str:
    return f'"{term}"' if " " in term else term


def generate_variants(original: str, normalized: str, sections: List[SectionReference],
                      concepts: List[str], words: List[str]) -> List[str]:
    """Alternative search strings, most specific first."""
    variants: List[str] = []
    bare = original.strip().strip('"').strip()
    if bare:
        variants.append(f'"{bare}"')

    section_terms = []
    for s in sections:
        token = s.token if s.valid else (s.suggestions[0] if s.suggestions else None)
        if token:
            section_terms.append(f'"Section {token}"')
    section_terms = list(dict.fromkeys(section_terms))
    codes = list(dict.fromkeys(s.code for s in sections))

    if section_terms:
        variants.append(" ANDD ".join(section_terms + codes))
    if concepts:
        variants.append(" ANDD ".join(section_terms + [_quote(c) for c in concepts]))
    if normalized:
        variants.append(normalized)
    if len(words) > 1:
        variants.append(" ANDD ".join(words))

    return list(dict.fromkeys(v for v in variants if v))


def process_query(query: str) -> ProcessedQuery:
    original = (query or "").strip()
    normalized = normalize_query(original)
    sections = extract_sections(normalized)
    concepts = extract_concepts(normalized)
    words = significant_words(normalized)
    return ProcessedQuery(
        original=original,
        normalized=normalized,
        sections=tuple(sections),
        concepts=tuple(concepts),
        significant_words=tuple(words),
        variants=tuple(generate_variants(original, normalized, sections, concepts, words)),
    )


# ---- Research-memo query planning ----

LANDMARK_QUERIES = {
    "arnesh": '"Arnesh Kumar" ANDD arrest ANDD guidelines',
    "gian_singh": '"Gian Singh" ANDD compromise ANDD quashing',
    "bhajan_lal": '"Bhajan Lal" ANDD 482 ANDD guidelines',
    "nikesh_shah": '"Nikesh Shah" ANDD PMLA ANDD bail',
    "antil": '"Satender Kumar Antil" ANDD bail ANDD undertrial',
}

SPECIAL_ACT_QUERIES = {
    "pmla": ['"PMLA" ANDD "proceeds of crime"', '"money laundering" ANDD bail',
             '"Vijay Madanlal Choudhary" ANDD PMLA', '"Section 45 PMLA" ANDD bail'],
    "pocso": ['"POCSO Act" ANDD bail', '"minor victim" ANDD "sexual offense"',
              '"Section 29 POCSO" ANDD presumption', '"Alakh Alok Srivastava" ANDD POCSO'],
    "ndps": ['"NDPS Act" ANDD "Section 37"', '"narcotic" ANDD "commercial quantity"',
             '"Tofan Singh" ANDD NDPS', '"conscious possession" ANDD drugs'],
    "uapa": ['"terrorist act" ANDD bail', '"UAPA" ANDD "Section 43D"', '"Watali" ANDD UAPA ANDD bail'],
}

SUB_ISSUE_QUERIES = {
    "specific injury": ['"no specific overt act" ANDD "Section 323"', '"specific injury" NOTT attributed'],
    "medical evidence": ['"medical evidence" ANDD contradicts ANDD FIR', '"medical report" ANDD "no injury"'],
    "vague allegations": ['"vague allegations" ANDD quashing', '"omnibus allegations" ANDD "no material"'],
    "compromise": ['"compromise petition" ANDD "Section 320"', '"victim affidavit" ANDD quashing'],
}


def compilation_queries(issue: str, sub_issues: Optional[List[str]] = None) -> List[str]:
    """Targeted searches for a research memo, ending with the issue itself."""
    subs = sub_issues or []
    low = issue.lower()
    queries: List[str] = []

    for ref in extract_sections(normalize_query(issue)):
        if not ref.valid:
            continue
        sec = ref.token
        if "bail" in low:
            queries.append(f'"Section {sec}" ANDD "bail granted"')
            queries.append(f'"Section {sec}" ANDD "bail" ANDD "Arnesh Kumar"')
        if "quashing" in low:
            queries.append(f'"Section {sec}" ANDD quashing ANDD "no prima facie"')
            queries.append(f'"Section {sec}" ANDD "482 CrPC"')
        if "compromise" in low:
            queries.append(f'"Section {sec}" ANDD "Section 320 CrPC"')
            queries.append(f'"Section {sec}" ANDD compromise ANDD "Gian Singh"')
        if "common intention" in low:
            queries.append(f'"Section 34" ANDD "common intention" ANDD "{sec}"')
            queries.append('"Section 34" ANDD "no prior meeting"')

    for sub in subs:
        sub_low = sub.lower()
        for marker, extra in SUB_ISSUE_QUERIES.items():
            if marker in sub_low:
                queries.extend(extra)

    if "pmla" in low:
        queries.extend(SPECIAL_ACT_QUERIES["pmla"])
    if "pocso" in low:
        queries.extend(SPECIAL_ACT_QUERIES["pocso"])
    if "ndps" in low:
        queries.extend(SPECIAL_ACT_QUERIES["ndps"])
    if "tada" in low or "uapa" in low:
        queries.extend(SPECIAL_ACT_QUERIES["uapa"])

    if "arrest" in low or "bail" in low:
        queries.append(LANDMARK_QUERIES["arnesh"])
        queries.append(LANDMARK_QUERIES["antil"])
    if "compromise" in low:
        queries.append(LANDMARK_QUERIES["gian_singh"])
    if "quashing" in low:
        queries.append(LANDMARK_QUERIES["bhajan_lal"])
    if "pmla" in low:
        queries.append(LANDMARK_QUERIES["nikesh_shah"])

    queries.append(issue)
    return list(dict.fromkeys(q for q in queries if q.strip()))


def irrelevant_indicators(issue: str, sub_issues: Optional[List[str]] = None) -> List[str]:
    """Special-act and offence terms that mark a result as off-topic for this issue."""
    text = f"{issue} {' '.join(sub_issues or [])}".lower()
    exclusions: List[str] = []

    if "tada" not in text and "terrorist" not in text:
        exclusions += ["TADA", "POTA", "terrorism"]
    if not any(w in text for w in ("pmla", "money laundering", "proceeds")):
        exclusions += ["PMLA", "money laundering", "proceeds of crime"]
    if not any(w in text for w in ("ndps", "narcotic", "drug")):
        exclusions += ["NDPS", "narcotics", "psychotropic"]
    if not any(w in text for w in ("pocso", "child", "minor")):
        exclusions += ["POCSO", "minor victim"]

    if any(w in text for w in ("323", "324", "326")) and "murder" not in text and "302" not in text:
        exclusions += ["murder", "homicide"]

    if any(w in text for w in ("420", "cheating", "fraud")):
        exclusions = [e for e in exclusions if e not in ("PMLA", "money laundering")]
    if any(w in text for w in ("376", "354", "sexual")):
        exclusions = [e for e in exclusions if e != "POCSO"]

    return exclusions
