import asyncio
import json

import httpx

from conftest import form_of
from legal_research.services.search import SearchPrecedentsParams, search_legal_precedents
from legal_research.services.tools import TOOLS, execute_tool


def sc_doc(tid, **fields):
    base = {"tid": tid, "title": f"Case {tid} vs State", "docsource": "Supreme Court of India",
            "publishdate": "2001-01-01", "headline": "bail granted"}
    base.update(fields)
    return base


def run_search(client, settings, **params):
    return asyncio.run(search_legal_precedents(client, settings, SearchPrecedentsParams(**params)))


def test_empty_result_carries_a_diagnostic(make_client, settings):
    queries = []

    def handler(request):
        queries.append(form_of(request)["formInput"])
        return httpx.Response(200, json={"docs": []})

    result = run_search(make_client(handler), settings, query="Section 823 IPC bail", courtLevel="all")

    assert result["cases"] == []
    diagnostic = result["diagnostic"]
    assert diagnostic["reason"] == "invalid_section_reference"
    assert diagnostic["alternativeQueries"][0] == "Section 323 IPC bail"
    assert 1 <= len(diagnostic["alternativeQueries"]) <= 5
    assert diagnostic["sectionSuggestions"]["Section 823 IPC"][0] == "323"
    assert "823" in result["warnings"][0]
    # Primary plus every variant that differs from it.
    assert queries[0] == "Section 823 IPC bail"
    assert '"Section 323" ANDD IPC' in queries
    assert queries.count("Section 823 IPC bail") == 1


def test_empty_result_with_filters_blames_the_filters(make_client, settings):
    def handler(request):
        return httpx.Response(200, json={"docs": [sc_doc(1, docsource="Bombay High Court")]})

    result = run_search(make_client(handler), settings, query="anticipatory bail", courtLevel="delhi")
    assert result["cases"] == []
    assert result["diagnostic"]["reason"] == "filters_too_narrow"
    assert result["diagnostic"]["alternativeQueries"]


def test_court_filter_is_sent_and_reapplied(make_client, settings):
    forms = []
    docs = [sc_doc(1, docsource="Delhi High Court"), sc_doc(2, docsource="Bombay High Court")] + [
        sc_doc(i, docsource="Delhi High Court") for i in range(3, 7)
    ]

    def handler(request):
        forms.append(form_of(request))
        return httpx.Response(200, json={"docs": docs})

    result = run_search(make_client(handler), settings, query="anticipatory bail", courtLevel="delhi",
                        dateFrom="01-01-2020")

    assert forms[0]["doctypes"] == "delhihighcourt"
    assert forms[0]["fromdate"] == "01-01-2020"
    assert result["totalResults"] == 5
    assert all(c["court"] == "Delhi High Court" for c in result["cases"])
    assert "doctypes: delhihighcourt" in result["searchMetadata"]["filtersApplied"]


def test_default_court_applies_when_none_requested(make_client, settings):
    forms = []

    def handler(request):
        forms.append(form_of(request))
        return httpx.Response(200, json={"docs": [sc_doc(i) for i in range(6)]})

    run_search(make_client(handler), settings, query="bail")
    assert forms[0]["doctypes"] == "supremecourt"


def test_enough_primary_results_skip_variants(make_client, settings):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"docs": [sc_doc(i) for i in range(6)]})

    result = run_search(make_client(handler), settings, query="Section 438 CrPC anticipatory bail")
    assert len(calls) == 1
    assert result["searchMetadata"]["variantsTried"] == ["Section 438 CrPC anticipatory bail"]


def test_cases_are_ranked_and_limited(make_client, settings):
    docs = [
        sc_doc(1, docsource="District Court", title="District matter"),
        sc_doc(2, numcitedby=40),
        sc_doc(3),
        sc_doc(4), sc_doc(5), sc_doc(6),
    ]

    def handler(request):
        return httpx.Response(200, json={"docs": docs})

    result = run_search(make_client(handler), settings, query="bail", courtLevel="all", maxResults=3)
    ids = [c["id"] for c in result["cases"]]
    assert ids == ["2", "3", "4"]
    first = result["cases"][0]
    assert first["courtType"] == "supreme"
    assert first["citedByCount"] == 40
    assert first["year"] == "2001"
    assert first["summary"].startswith("bail granted")
    assert result["lowConfidence"] is False


def test_threshold_fallback_marks_low_confidence(make_client, settings):
    def handler(request):
        return httpx.Response(200, json={"docs": [sc_doc(i) for i in range(6)]})

    result = run_search(make_client(handler), settings, query="bail", courtLevel="all",
                        maxResults=3, minRelevance=100)

    assert result["lowConfidence"] is True
    assert "relevance threshold" in result["note"]
    assert len(result["cases"]) == 3
    assert all(c["belowThreshold"] for c in result["cases"])
    assert "diagnostic" not in result


def test_partial_failure_is_reported(make_client, settings):
    def handler(request):
        if form_of(request)["formInput"] == "Section 302 IPC murder":
            return httpx.Response(500)
        return httpx.Response(200, json={"docs": [sc_doc(7, headline="Section 302 murder")]})

    result = run_search(make_client(handler), settings, query="Section 302 IPC murder", courtLevel="all")
    assert result["searchMetadata"]["failedSearches"] == 1
    assert [c["id"] for c in result["cases"]] == ["7"]
    assert result["cases"][0]["matchedSections"] == ["302"]


def test_all_searches_failing_is_an_error_envelope(make_client, settings):
    client = make_client(lambda request: httpx.Response(500))
    tool = TOOLS["search_legal_precedents"]
    params = SearchPrecedentsParams(query="Section 302 IPC murder")

    envelope = asyncio.run(execute_tool(tool, params, client, settings))
    assert envelope["isError"] is True
    assert envelope["content"][0]["text"].startswith("Error in legal precedent search: API request failed: 500")


def test_success_envelope_holds_json(make_client, settings):
    client = make_client(lambda request: httpx.Response(200, json={"docs": [sc_doc(i) for i in range(6)]}))
    tool = TOOLS["search_legal_precedents"]

    envelope = asyncio.run(execute_tool(tool, SearchPrecedentsParams(query="bail"), client, settings))
    assert envelope["isError"] is False
    body = json.loads(envelope["content"][0]["text"])
    assert body["totalResults"] == 6
