from legal_research.services.query import (
    compilation_queries,
    extract_concepts,
    extract_sections,
    irrelevant_indicators,
    normalize_query,
    process_query,
    suggest_sections,
)


def test_out_of_range_ipc_section_is_flagged_with_typo_suggestion():
    processed = process_query("Section 823 IPC bail")

    assert len(processed.sections) == 1
    ref = processed.sections[0]
    assert ref.number == 823
    assert ref.code == "IPC"
    assert not ref.valid
    assert "323" in ref.suggestions
    assert processed.invalid_sections == [ref]
    assert "823" in processed.warnings()[0]


def test_suggestions_use_leading_digit_strip_and_neighbours():
    suggestions = suggest_sections(512, "IPC")
    assert "12" in suggestions
    assert "511" in suggestions
    assert len(suggestions) == len(set(suggestions))


def test_surface_forms_of_section_references():
    tokens = [(r.token, r.code) for r in extract_sections(normalize_query("u/s 498A and Sec. 406 IPC"))]
    assert tokens == [("498A", "IPC"), ("406", "IPC")]

    tokens = [(r.token, r.code) for r in extract_sections("Sections 302, 307 and 34 IPC")]
    assert tokens == [("302", "IPC"), ("307", "IPC"), ("34", "IPC")]

    tokens = [(r.token, r.code) for r in extract_sections("offence under 420 of the Indian Penal Code")]
    assert tokens == [("420", "IPC")]


def test_read_with_sections_are_extracted():
    tokens = [(r.token, r.code) for r in extract_sections(normalize_query("u/s 438 CrPC r/w 34"))]
    assert tokens == [("438", "CrPC"), ("34", "CrPC")]

    tokens = [(r.token, r.code) for r in extract_sections("Section 307 read with Section 34 IPC")]
    assert tokens == [("307", "IPC"), ("34", "IPC")]


def test_code_detection_and_ranges():
    crpc = extract_sections("Section 438 CrPC anticipatory bail")[0]
    assert (crpc.code, crpc.valid) == ("CrPC", True)

    bns = extract_sections("Section 420 BNS")[0]
    assert bns.code == "BNS"
    assert not bns.valid
    assert "318" in bns.suggestions

    # No code named: defaults to the Penal Code.
    assert extract_sections("Section 302 murder")[0].code == "IPC"


def test_overlapping_patterns_are_deduplicated():
    refs = extract_sections("Section 302 IPC and 302 IPC again")
    assert [r.token for r in refs] == ["302"]


def test_normalization_expands_abbreviations():
    assert normalize_query("bail  u/s 302 r/w 34 IPC") == "bail under Section 302 read with 34 IPC"
    assert normalize_query("w.r.t. sec.120B") == "with respect to Section 120B"


def test_concepts_are_matched_on_word_boundaries():
    concepts = extract_concepts("Anticipatory Bail and quashing of FIR; mens-rea absent")
    assert "anticipatory bail" in concepts
    assert "bail" in concepts
    assert "quashing" in concepts
    assert "mens rea" in concepts
    assert "theft" not in extract_concepts("theftuous")


def test_variants_are_ordered_and_unique():
    processed = process_query("Section 823 IPC bail")
    assert processed.variants == (
        '"Section 823 IPC bail"',
        '"Section 323" ANDD IPC',
        '"Section 323" ANDD bail',
        "Section 823 IPC bail",
    )


def test_boolean_and_variant_uses_significant_words():
    processed = process_query("quashing of proceedings after compromise")
    assert processed.variants[-1] == "quashing ANDD proceedings ANDD compromise"


def test_processing_is_deterministic():
    assert process_query("u/s 302 IPC murder") == process_query("u/s 302 IPC murder")


def test_compilation_queries_cover_landmarks_and_end_with_issue():
    queries = compilation_queries("bail under Section 323 IPC", ["medical evidence contradicts FIR"])
    assert '"Section 323" ANDD "bail granted"' in queries
    assert '"Arnesh Kumar" ANDD arrest ANDD guidelines' in queries
    assert queries[-1] == "bail under Section 323 IPC"
    assert len(queries) == len(set(queries))


def test_irrelevant_indicators_respect_the_issue():
    exclusions = irrelevant_indicators("Section 323 IPC hurt")
    assert "NDPS" in exclusions
    assert "murder" in exclusions

    assert "PMLA" not in irrelevant_indicators("PMLA bail")
    assert "POCSO" not in irrelevant_indicators("Section 376 sexual assault")
