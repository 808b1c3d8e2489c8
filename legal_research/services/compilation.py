"""
Research-memo builder for `build_case_compilation`.

Runs a batch of targeted searches, merges the hits (counting how many
searches found each case), drops off-topic results, ranks what is left
and renders a markdown memo.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from legal_research.core.config import CourtChoice, Settings
from legal_research.services.citations import format_parties
from legal_research.services.kanoon_client import IndianKanoonClient, gather_settled
from legal_research.services.query import compilation_queries, irrelevant_indicators
from legal_research.services.scoring import RECENCY_YEARS, ScoredCase, court_label, rank_documents
from legal_research.services.text import strip_html

logger = logging.getLogger(__name__)

IST = timezone(timedelta(hours=5, minutes=30), "IST")
DOCS_PER_QUERY = 10
DETAIL_COUNTS = {"quick": 2, "standard": 3, "comprehensive": 5}
SERVICE_NAME = "Indian Legal Research v1.0.0"

AnalysisDepth = Literal["quick", "standard", "comprehensive"]


class CaseCompilationParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    legal_issue: str = Field(..., alias="legalIssue", min_length=1, description="Primary legal issue to research")
    sub_issues: Optional[List[str]] = Field(None, alias="subIssues", description="Sub-issues to cover")
    jurisdiction: CourtChoice = Field("all", description="Preferred jurisdiction")
    max_cases: int = Field(15, alias="maxCases", ge=5, le=50, description="Maximum cases to include")
    analysis_depth: AnalysisDepth = Field("standard", alias="analysisDepth", description="Depth of analysis")
    include_strategy: bool = Field(True, alias="includeStrategy", description="Include strategic recommendations")


def collect_cases(results: List[Optional[Dict[str, Any]]]):
    """First-seen docs keyed by tid, plus the number of searches that found each."""
    cases: Dict[Any, Dict[str, Any]] = {}
    hits: Dict[Any, int] = {}
    for result in results:
        for doc in ((result or {}).get("docs") or [])[:DOCS_PER_QUERY]:
            tid = doc.get("tid")
            if tid is None:
                continue
            if tid in cases:
                hits[tid] += 1
            else:
                cases[tid] = doc
                hits[tid] = 1
    return cases, hits


def is_relevant(doc: Dict[str, Any], exclusions: List[str]) -> bool:
    text = f"{doc.get('title') or ''} {doc.get('headline') or ''}".lower()
    return not any(e.lower() in text for e in exclusions)


def _year(case: ScoredCase) -> str:
    return str(case.year) if case.year else ""


def _detailed_entry(case: ScoredCase, index: int) -> str:
    doc = case.doc
    court = court_label(doc) or "Unknown Court"
    year = _year(case)
    summary = strip_html(doc.get("headline") or "")[:250] or "No summary available"
    lines = [
        f"**{index + 1}. {format_parties(doc.get('title'))}**",
        f"   *Citation*: {doc.get('citation') or f'{year} {court}'.strip()}",
        f"   *Court*: {court}",
        f"   *Date*: {doc.get('publishdate') or 'Unknown'}",
    ]
    if case.query_hits > 1:
        lines.append(f"   *Relevance*: High (matched {case.query_hits} search criteria)")
    lines.append(f"   *Key Point*: {summary}...")
    return "\n".join(lines) + "\n"


def _sub_issue_section(sub_issues: List[str], cases: List[ScoredCase]) -> str:
    parts = ["## Issue-Specific Analysis", ""]
    for sub in sub_issues:
        keywords = [w for w in sub.lower().split() if len(w) > 3]
        needed = min(2, len(keywords))
        relevant = []
        for c in cases:
            text = f"{c.doc.get('title') or ''} {c.doc.get('headline') or ''}".lower()
            if sum(1 for kw in keywords if kw in text) >= needed:
                relevant.append(c)
        if not relevant:
            continue
        parts += [f"### {sub}", "", f"**Leading Cases**: {len(relevant)} relevant precedents found", ""]
        top = relevant[0]
        if top.doc.get("headline"):
            parts.append(f"**Key Precedent**: {format_parties(top.doc.get('title'))} ({_year(top)})")
            parts += [f'> "{strip_html(top.doc["headline"])[:300]}..."', ""]
    return "\n".join(parts) if len(parts) > 2 else ""


def _strategy_section(cases: List[ScoredCase], supreme: List[ScoredCase], high: List[ScoredCase],
                      sub_issues: List[str]) -> str:
    headlines = [(c.doc.get("headline") or "").lower() for c in cases]
    lines = ["## Strategic Recommendations", "", "### For Bail Applications"]
    if supreme:
        lines.append("- Rely on Supreme Court precedents for binding authority")
    if any("bail granted" in h for h in headlines):
        lines.append("- Emphasize cases where bail was granted in similar circumstances")
    else:
        lines.append("- Focus on distinguishing unfavorable precedents")
    lines += ["- Consider citing Arnesh Kumar guidelines if applicable to the sections involved", "",
              "### For Quashing Petitions"]
    if any("quashing allowed" in h for h in headlines):
        lines.append("- Strong precedents available for quashing in similar cases")
    else:
        lines.append("- Limited direct precedents; focus on procedural irregularities")
    if any("compromise" in s.lower() for s in sub_issues):
        lines.append("- Compromise route available under Gian Singh principles")

    strongest = sub_issues[0] if sub_issues else "lack of prima facie case"
    if len(supreme) > 3:
        probability = "High"
    elif len(high) > 5:
        probability = "Moderate"
    else:
        probability = "Low-Moderate"
    critical = (f"Follow the ratio in {format_parties(cases[0].doc.get('title'))}" if cases
                else "Establish clear factual distinctions")
    lines += [
        "",
        "### Key Arguments to Advance",
        f"1. **Strongest Ground**: Based on precedent analysis, focus on {strongest}",
        "2. **Supporting Arguments**: Develop arguments around procedural lapses and evidentiary gaps",
        "3. **Defensive Position**: Be prepared to distinguish unfavorable precedents",
        "",
        "### Risk Assessment",
        f"- **Success Probability**: {probability}",
        f"- **Critical Factor**: {critical}",
    ]
    return "\n".join(lines)


def render_memo(params: CaseCompilationParams, queries: List[str], unique_count: int,
                relevant_count: int, top: List[ScoredCase], now: datetime) -> str:
    sub_issues = params.sub_issues or []
    detail = DETAIL_COUNTS[params.analysis_depth]
    supreme = [c for c in top if c.court_type == "supreme"]
    high = [c for c in top if c.court_type == "high"]
    tribunal = [c for c in top if c.court_type == "tribunal"]
    other = [c for c in top if c.court_type not in ("supreme", "high", "tribunal")]

    def latest(group: List[ScoredCase]) -> str:
        years = [c.year for c in group if c.year]
        return str(max(years)) if years else "N/A"

    out = [f"# Legal Research Memo: {params.legal_issue}", "", "## Executive Summary",
           f"- **Primary Legal Question**: {params.legal_issue}"]
    if sub_issues:
        out.append(f"- **Sub-Issues**: {len(sub_issues)} specific issues analyzed")
    out += [
        f"- **Jurisdiction**: {'Pan-India' if params.jurisdiction == 'all' else params.jurisdiction}",
        f"- **Cases Analyzed**: {len(top)} (from {unique_count} unique cases found)",
        f"- **Search Queries Used**: {len(queries)} targeted searches",
        f"- **Analysis Depth**: {params.analysis_depth}",
        "",
        "## Quick Reference Statistics",
        "| Court Level | Cases Found | Most Recent |",
        "|------------|-------------|-------------|",
        f"| Supreme Court | {len(supreme)} | {latest(supreme)} |",
        f"| High Courts | {len(high)} | {latest(high)} |",
        f"| Other Courts | {len(other) + len(tribunal)} | {latest(other + tribunal)} |",
        "",
        "## Table of Authorities",
        "",
        f"### Supreme Court of India ({len(supreme)})",
    ]
    if supreme:
        for i, c in enumerate(supreme):
            cite = f" [{c.doc['citation']}]" if c.doc.get("citation") else ""
            out.append(f"{i + 1}. **{format_parties(c.doc.get('title'))}** - {_year(c)}{cite}")
    else:
        out.append("No Supreme Court cases found for this query")
    out += ["", f"### High Courts ({len(high)})"]
    if high:
        for i, c in enumerate(high):
            out.append(f"{i + 1}. **{format_parties(c.doc.get('title'))}** - {_year(c)} ({court_label(c.doc)})")
    else:
        out.append("No High Court cases found for this query")
    if tribunal:
        out += ["", f"### Tribunals ({len(tribunal)})"]
        out += [f"{i + 1}. {format_parties(c.doc.get('title'))} - {_year(c)}" for i, c in enumerate(tribunal)]

    if sub_issues and params.analysis_depth != "quick":
        section = _sub_issue_section(sub_issues, top)
        if section:
            out += ["", section]

    out += ["", "## Detailed Case Analysis", "", "### Binding Precedents (Supreme Court)"]
    if supreme:
        out += [_detailed_entry(c, i) for i, c in enumerate(supreme[:detail])]
    else:
        out.append("*No Supreme Court precedents found. Consider High Court decisions as persuasive authority.*\n")
    out.append("### Persuasive Authorities (High Courts)")
    if high:
        out += [_detailed_entry(c, i) for i, c in enumerate(high[:detail])]
    else:
        out.append("*No High Court precedents found. Review may need broader search parameters.*\n")

    out.append(f"### Recent Developments (Last {RECENCY_YEARS} Years)")
    recent = [c for c in top if c.year and now.year - c.year <= RECENCY_YEARS]
    if recent:
        out += [_detailed_entry(c, i) for i, c in enumerate(recent[:2])]
    else:
        out.append(f"*No recent cases in the last {RECENCY_YEARS} years. The legal position appears settled.*\n")

    if params.include_strategy:
        out += [_strategy_section(top, supreme, high, sub_issues), ""]

    if supreme:
        position = "is well-established by Supreme Court precedents"
    elif len(high) > 3:
        position = "has consistent High Court interpretation"
    else:
        position = "requires careful case-by-case analysis"
    if top and top[0].doc.get("headline"):
        takeaway = f"The principle emerging from {format_parties(top[0].doc.get('title'))} provides the clearest guidance."
    else:
        takeaway = "Further research with modified search parameters may be needed."
    application = ("See strategic recommendations above for litigation strategy." if params.include_strategy
                   else "Consider the precedents in order of hierarchical authority.")

    out += [
        "## Conclusion",
        "",
        f"Based on the analysis of {len(top)} cases across {len(queries)} targeted searches:",
        "",
        f'1. **Legal Position**: The jurisprudence on "{params.legal_issue}" {position}.',
        "",
        f"2. **Key Takeaway**: {takeaway}",
        "",
        f"3. **Practical Application**: {application}",
        "",
        "## Research Methodology Note",
        f"- **Searches Performed**: {len(queries)} different query combinations",
        f"- **Cases Reviewed**: {unique_count} unique cases identified",
        f"- **Relevance Filtering**: Applied to exclude {unique_count - relevant_count} irrelevant results",
        "- **Ranking Method**: Multi-factor scoring including court hierarchy, recency, citations, and query matches",
        "",
        "---",
        f"*Research compiled on {now.strftime('%d/%m/%Y, %I:%M:%S %p')} IST*",
        f"*Generated by {SERVICE_NAME}*",
    ]
    return "\n".join(out)


async def build_case_compilation(client: IndianKanoonClient, settings: Settings,
                                 params: CaseCompilationParams, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(IST)
    queries = compilation_queries(params.legal_issue, params.sub_issues)
    logger.info(f"[COMPILATION] Running {len(queries)} searches for '{params.legal_issue}'")

    settled = await gather_settled([client.search(q, 0) for q in queries])
    failures = [s.error for s in settled if not s.ok]
    if len(failures) == len(settled):
        raise failures[0]
    for q, s in zip(queries, settled):
        if not s.ok:
            logger.warning(f"[COMPILATION] Search failed for query {q!r}: {s.error}")

    cases, hits = collect_cases([s.value for s in settled if s.ok])
    exclusions = irrelevant_indicators(params.legal_issue, params.sub_issues)
    relevant = [doc for doc in cases.values() if is_relevant(doc, exclusions)]
    top = rank_documents(relevant, query_hits=hits, current_year=now.year)[:params.max_cases]

    return render_memo(params, queries, len(cases), len(relevant), top, now)
