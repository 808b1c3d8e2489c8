import pytest

from legal_research.services.query import process_query
from legal_research.services.scoring import (
    apply_threshold,
    base_score,
    identify_court,
    query_match,
    rank_documents,
)


def doc(tid, **fields):
    return {"tid": tid, "title": f"Case {tid}", **fields}


@pytest.mark.parametrize("label, court, weight", [
    ("Supreme Court of India", "supreme", 1.5),
    ("Apex Court", "supreme", 1.5),
    ("Delhi High Court", "high", 1.2),
    ("Bombay", "high", 1.2),
    ("District Court", "district", 1.0),
    ("Sessions Court", "district", 1.0),
    ("Income Tax Appellate Tribunal", "tribunal", 0.9),
    ("National Consumer Commission", "commission", 1.0),
    ("", "other", 1.0),
])
def test_court_weights(label, court, weight):
    d = doc(1, docsource=label)
    assert identify_court(d) == court
    assert base_score(d, current_year=2000) == pytest.approx(weight)


def test_doctype_wins_over_docsource():
    assert identify_court(doc(1, doctype="Supreme Court", docsource="Delhi High Court")) == "supreme"
    assert identify_court(doc(1, doctype=7, docsource="Delhi High Court")) == "high"


@pytest.mark.parametrize("cited_by, multiplier", [
    (25, 1.4), (21, 1.4), (20, 1.2), (15, 1.2), (11, 1.2), (10, 1.0), (None, 1.0),
])
def test_citation_multiplier(cited_by, multiplier):
    assert base_score(doc(1, numcitedby=cited_by), current_year=2000) == pytest.approx(multiplier)


def test_recency_bonus():
    assert base_score(doc(1, publishdate="2023-05-01"), current_year=2025) == pytest.approx(1.3)
    assert base_score(doc(1, publishdate="2022-05-01"), current_year=2025) == pytest.approx(1.0)
    assert base_score(doc(1, publishdate="unknown"), current_year=2025) == pytest.approx(1.0)


def test_multipliers_compound():
    d = doc(1, docsource="Supreme Court of India", publishdate="2024-01-01", numcitedby=30)
    assert base_score(d, current_year=2025) == pytest.approx(1.5 * 1.3 * 1.4)


def test_query_match_rewards_sections_and_penalises_their_absence():
    query = process_query("Section 302 IPC murder")

    factor, sections, concepts = query_match(doc(1, title="State v. Ram", headline="<b>Section 302</b> murder"), query)
    assert factor == pytest.approx(1.4 * 1.3 * 1.2)
    assert sections == ["302"]
    assert concepts == ["murder"]

    factor, sections, _ = query_match(doc(2, title="State v. Shyam", headline="a murder trial"), query)
    assert sections == []
    assert factor == pytest.approx(1.3 * 1.2 * 0.5)


def test_ranking_is_descending_and_stable_on_ties():
    docs = [doc(1), doc(2, docsource="Supreme Court"), doc(3), doc(4)]
    ranked = rank_documents(docs, current_year=2000)
    assert [c.tid for c in ranked] == [2, 1, 3, 4]


def test_multi_query_hits_boost_score():
    docs = [doc(1), doc(2)]
    ranked = rank_documents(docs, current_year=2000, query_hits={1: 1, 2: 3})
    assert [c.tid for c in ranked] == [2, 1]
    assert ranked[0].score == pytest.approx(1.4)
    assert ranked[0].query_hits == 3


def test_threshold_keeps_qualifying_cases():
    ranked = rank_documents([doc(1, docsource="Supreme Court"), doc(2)], current_year=2000)
    cases, low_confidence = apply_threshold(ranked, 1.2, 10)
    assert [c.tid for c in cases] == [1]
    assert not low_confidence


def test_threshold_falls_back_to_best_cases():
    ranked = rank_documents([doc(i) for i in range(5)], current_year=2000)
    cases, low_confidence = apply_threshold(ranked, 100.0, 3)
    assert low_confidence
    assert [c.tid for c in cases] == [0, 1, 2]
    assert all(c.below_threshold for c in cases)
    assert not any(c.below_threshold for c in ranked)


def test_threshold_on_empty_input():
    assert apply_threshold([], 0.5, 10) == ([], False)
