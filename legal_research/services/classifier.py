"""
Rule-based legal-weight classification of judgment fragments.

Every category in ``LEGAL_WEIGHT_CATEGORIES`` is tested against the text.
All categories that match are reported, but the label is the first matching
category in table order, which is the priority order.
"""
import re
from typing import List, NamedTuple, Tuple

from pydantic import BaseModel, ConfigDict

DEFAULT_LABEL = "Supporting Observation"
DEFAULT_KEY = "supporting_observation"
DEFAULT_CONFIDENCE = 0.5
EXTRA_MATCH_BONUS = 0.02


class WeightCategory(NamedTuple):
    key: str
    label: str
    base_confidence: float
    patterns: Tuple[re.Pattern, ...]


def _compile(*markers: str) -> Tuple[re.Pattern, ...]:
    return tuple(re.compile(m, re.IGNORECASE) for m in markers)


# Highest priority first.
LEGAL_WEIGHT_CATEGORIES: Tuple[WeightCategory, ...] = (
    WeightCategory("ratio_decidendi", "Ratio Decidendi", 0.9, _compile(
        r"\bwe (?:therefore |accordingly )?hold that\b",
        r"\bit is (?:hereby )?held that\b",
        r"\bheld that\b",
        r"\bit is (?:well[\s-])?settled (?:law|position|principle)\b",
        r"\bsettled (?:position|proposition) of law\b",
        r"\bratio decidendi\b",
        r"\bprinciple of law\b",
        r"\blaw (?:is|stands) (?:thus )?(?:declared|laid down)\b",
        r"\bwe are (?:of the )?(?:clear |considered )?(?:view|opinion) that\b",
        r"\bit was decided\b",
        r"\bthe court observed\b",
    )),
    WeightCategory("overruling_precedent", "Overruling Precedent", 0.9, _compile(
        r"\boverrul(?:e|ed|ing)\b",
        r"\bper incuriam\b",
        r"\bno longer good law\b",
        r"\bdoes not lay down (?:the )?correct law\b",
        r"\bwrongly decided\b",
    )),
    WeightCategory("statutory_interpretation", "Statutory Interpretation", 0.85, _compile(
        r"\bplain meaning\b",
        r"\bliteral (?:rule|interpretation|construction)\b",
        r"\bgolden rule\b",
        r"\bmischief rule\b",
        r"\bpurposive (?:interpretation|construction)\b",
        r"\blegislative intent(?:ion)?\b",
        r"\bintention of the legislature\b",
        r"\bon a (?:plain|bare) reading of\b",
        r"\bthe expression ['\"“]",
    )),
    WeightCategory("evidence_analysis", "Evidence Analysis", 0.8, _compile(
        r"\b(?:the )?evidence on record\b",
        r"\bprosecution (?:has )?(?:failed|proved|established)\b",
        r"\bbeyond (?:all )?reasonable doubt\b",
        r"\bcredibility of (?:the )?witness(?:es)?\b",
        r"\bmedical evidence\b",
        r"\bcircumstantial evidence\b",
        r"\btestimony of\b",
    )),
    WeightCategory("following_precedent", "Following Precedent", 0.8, _compile(
        r"\b(?:we are )?bound by (?:the )?(?:decision|judgment|ratio)\b",
        r"\bfollowing (?:the )?(?:decision|judgment|ratio|law laid down)\b",
        r"\breli(?:ed|ance (?:is|was) placed) (?:up)?on\b",
        r"\bas (?:held|laid down) in\b",
        r"\bfollowed in\b",
    )),
    WeightCategory("distinguishing", "Distinguishing", 0.75, _compile(
        r"\bdistinguish(?:ed|able|ing)\b",
        r"\bfacts (?:of the present case )?are (?:entirely )?different\b",
        r"\bhas no application to the (?:present|facts)\b",
        r"\bnot applicable to the facts\b",
    )),
    WeightCategory("procedural_direction", "Procedural Direction", 0.7, _compile(
        r"\b(?:is|are) (?:hereby )?directed to\b",
        r"\bwe direct\b",
        r"\bremand(?:ed)?\b",
        r"\bliberty (?:is )?(?:granted|reserved)\b",
        r"\blist (?:the matter|after)\b",
        r"\bappeal is (?:allowed|dismissed|disposed of)\b",
    )),
    WeightCategory("concession_admission", "Concession/Admission", 0.65, _compile(
        r"\bfairly conceded\b",
        r"\b(?:it is |was )?(?:not )?disputed that\b",
        r"\bcounsel (?:for the \w+ )?(?:conceded|admitted)\b",
        r"\badmittedly\b",
        r"\bconcession\b",
    )),
    WeightCategory("judicial_disagreement", "Judicial Disagreement", 0.6, _compile(
        r"\bwith (?:great |utmost )?respect\b",
        r"\bunable to agree\b",
        r"\bcannot agree\b",
        r"\bdissent(?:ing)?\b",
        r"\bdiffer(?:ent view| from)\b",
    )),
    WeightCategory("obiter_dictum", "Obiter Dictum", 0.55, _compile(
        r"\bobiter\b",
        r"\bin passing\b",
        r"\bwe may (?:also )?(?:observe|note|add)\b",
        r"\bit may be (?:noted|observed|mentioned)\b",
        r"\bincidentally\b",
        r"\bwithout expressing any (?:final )?opinion\b",
    )),
)

PRIORITY_ORDER: Tuple[str, ...] = tuple(c.key for c in LEGAL_WEIGHT_CATEGORIES) + (DEFAULT_KEY,)
PRIORITY_RANK = {key: rank for rank, key in enumerate(PRIORITY_ORDER)}


class Classification(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    key: str
    confidence: float
    matched_categories: List[str]

    @property
    def rank(self) -> int:
        return PRIORITY_RANK[self.key]


def _count_markers(category: WeightCategory, text: str) -> int:
    return sum(1 for p in category.patterns if p.search(text))


def classify(text: str) -> Classification:
    text = text or ""
    hits = []
    for category in LEGAL_WEIGHT_CATEGORIES:
        n = _count_markers(category, text)
        if n:
            hits.append((category, n))
    if not hits:
        return Classification(
            label=DEFAULT_LABEL, key=DEFAULT_KEY, confidence=DEFAULT_CONFIDENCE, matched_categories=[]
        )

    winner, markers = hits[0]
    confidence = min(1.0, winner.base_confidence + EXTRA_MATCH_BONUS * (markers - 1))
    return Classification(
        label=winner.label,
        key=winner.key,
        confidence=round(confidence, 2),
        matched_categories=[c.label for c, _ in hits],
    )
