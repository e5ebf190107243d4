from query_router.extract.types import ParameterBag
from query_router.intent import catalog
from query_router.intent.classifier import (
    classify,
    confidence_for,
    keyword_weight,
    rank_candidates,
)
from query_router.intent.types import Candidate


def test_catalog_shape() -> None:
    assert len(catalog.INTENTS) == 40
    assert {i.tier for i in catalog.INTENTS} == {1, 2, 3}
    assert all(kw in catalog.KEYWORD_PATTERNS for i in catalog.INTENTS for kw in i.keywords)


def test_keyword_weights() -> None:
    # 2 words * 3 + exact phrase bonus + discriminator bonus
    assert keyword_weight("total tonnage", "what is the total tonnage") == 15.0
    assert keyword_weight("tonnage", "what is the total tonnage") == 3.0
    assert keyword_weight("show", "show me the data") == 1.0


def test_tie_break_prefers_lower_tier_then_more_keywords_then_name() -> None:
    tier2 = Candidate("MONTHLY_SUMMARY", 2, 10.0, ["monthly"])
    tier1 = Candidate("SHIFT_RANKING", 1, 10.0, ["best shift"])
    assert rank_candidates([tier2, tier1])[0].intent == "SHIFT_RANKING"

    few = Candidate("TOTAL_TRIPS", 2, 9.0, ["trips"])
    many = Candidate("TOTAL_TONNAGE", 2, 9.0, ["tonnage", "tons"])
    assert rank_candidates([few, many])[0].intent == "TOTAL_TONNAGE"

    left = Candidate("B_INTENT", 2, 6.0, ["abc"])
    right = Candidate("A_INTENT", 2, 6.0, ["xyz"])
    assert [c.intent for c in rank_candidates([left, right])] == ["A_INTENT", "B_INTENT"]


def test_generic_tier_only_survives_alone() -> None:
    generic = Candidate("DATA_RETRIEVAL", 3, 30.0, ["show"])
    specific = Candidate("TOTAL_TRIPS", 2, 3.0, ["trips"])
    assert [c.intent for c in rank_candidates([generic, specific])] == ["TOTAL_TRIPS"]
    assert [c.intent for c in rank_candidates([generic])] == ["DATA_RETRIEVAL"]


def test_specific_aggregation_excludes_generic_aggregation() -> None:
    generic = Candidate("AGGREGATION_QUERY", 3, 12.0, ["sum"])
    specific = Candidate("TOTAL_TONNAGE", 2, 3.0, ["tonnage"])
    ranked = rank_candidates([generic, specific])
    assert "AGGREGATION_QUERY" not in {c.intent for c in ranked}


def test_confidence_is_normalized_by_tier_and_clamped() -> None:
    assert confidence_for(Candidate("X", 1, 36.0)) == 1.0
    assert confidence_for(Candidate("X", 2, 18.0)) == 0.9
    assert confidence_for(Candidate("X", 3, 5.0)) == 0.2


def test_equipment_comparison_question() -> None:
    result = classify(
        "Compare BB-001 and TIP-45 between April 2024 and June 2024 "
        "for shifts A and B with tonnage above 800 tons"
    )
    assert result.intent == "EQUIPMENT_SPECIFIC_PRODUCTION"
    assert result.confidence >= 0.7
    assert "param:equipment_ids" in result.matched_keywords


def test_total_tonnage() -> None:
    result = classify("total tonnage for January 2024")
    assert result.intent == "TOTAL_TONNAGE"
    assert result.confidence == 0.9
    assert result.parameters.month == 1


def test_forecasting() -> None:
    result = classify("Forecast production for next month")
    assert result.intent == "FORECASTING"
    assert result.confidence == 1.0


def test_advisory() -> None:
    result = classify("How to improve safety on haul roads?")
    assert result.intent == "ADVISORY_QUERY"
    assert result.confidence >= 0.9


def test_ordinal_row_evidence() -> None:
    result = classify("show the 5th row from production_summary")
    assert result.intent == "ORDINAL_ROW_QUERY"
    assert result.parameters.row_number == 5


def test_equipment_combination() -> None:
    result = classify("Which tippers worked with excavators in March 2024")
    assert result.intent == "EQUIPMENT_COMBINATION"


def test_named_equipment_outranks_combination() -> None:
    result = classify("Which tippers worked with excavator EX-189")
    assert result.intent == "EQUIPMENT_SPECIFIC_PRODUCTION"
    assert "param:equipment_ids" in result.matched_keywords


def test_pairing_advice_becomes_optimization() -> None:
    result = classify("which excavator and tipper combination should I pick for tomorrow")
    assert result.intent == "EQUIPMENT_OPTIMIZATION"
    assert result.confidence >= 0.7


def test_statistical_words_override_other_intents() -> None:
    result = classify("what is the median tonnage for shift A")
    assert result.intent == "STATISTICAL_QUERY"
    assert result.confidence == 1.0

    forced = classify("what was the standard deviation of trips")
    assert forced.intent == "STATISTICAL_QUERY"


def test_specific_day_is_not_a_monthly_summary() -> None:
    result = classify("monthly tonnage for January 15")
    assert result.intent == "TOTAL_TONNAGE"


def test_forecasting_context_filters() -> None:
    face = classify("expected production projection for face 3")
    assert face.intent == "ROUTES_FACES_ANALYSIS"

    assert classify("overall production projection for 2024").intent != "FORECASTING"
    assert classify("show projection data for March").intent != "FORECASTING"
    assert classify("forecast production for face 3").intent == "FORECASTING"


def test_misspelled_forecast_chart_is_a_chart() -> None:
    assert classify("forcast chart of production").intent == "CHART_VISUALIZATION"


def test_classification_is_repeatable() -> None:
    question = "Compare BB-001 and TIP-45 for shift A in March 2024"
    first = classify(question).to_dict()
    for _ in range(3):
        assert classify(question).to_dict() == first


def test_equipment_ranking() -> None:
    result = classify("which tipper made the most trips")
    assert result.intent == "EQUIPMENT_RANKING"


def test_no_keywords_falls_back_on_parameters() -> None:
    dated = classify("2024-03-15")
    assert dated.intent == "DATA_RETRIEVAL"
    assert dated.confidence == 0.5

    unknown = classify("")
    assert unknown.intent == catalog.UNKNOWN
    assert unknown.confidence == 0.0


def test_precomputed_parameters_are_used() -> None:
    params = ParameterBag(row_number=3)
    result = classify("give me row", params)
    assert result.parameters is params
    assert result.intent == "ORDINAL_ROW_QUERY"
