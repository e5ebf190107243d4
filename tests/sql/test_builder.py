import pytest

from query_router.dates.parser import parse_date
from query_router.extract.parameters import extract_parameters
from query_router.extract.types import Comparison, Measurement, NumericFilter, ParameterBag
from query_router.sql.builder import BUILDERS, build_sql
from query_router.sql.validate import validate_sql


def test_equipment_filters_without_threshold() -> None:
    question = "Compare BB-001 and TIP-45 between April 2024 and June 2024 for shifts A and B"
    sql = build_sql("EQUIPMENT_SPECIFIC_PRODUCTION", extract_parameters(question), question)
    assert sql == (
        "SELECT tipper_id, SUM(trip_count) AS total_trips, COUNT(DISTINCT trip_date) AS active_days "
        "FROM trip_summary_by_date "
        "WHERE trip_date BETWEEN '2024-04-01' AND '2024-06-30' "
        "AND shift IN ('A', 'B') AND tipper_id IN ('BB-001', 'TIP-45') "
        "GROUP BY tipper_id ORDER BY total_trips DESC"
    )


def test_tonnage_threshold_on_trip_table_declines() -> None:
    # trip_summary_by_date has no tonnage column to apply "above 800 tons" to
    question = (
        "Compare BB-001 and TIP-45 between April 2024 and June 2024 "
        "for shifts A and B with tonnage above 800 tons"
    )
    assert build_sql("EQUIPMENT_SPECIFIC_PRODUCTION", extract_parameters(question), question) is None


def test_tonnage_threshold_filters_production_rows() -> None:
    question = "total tonnage for days above 500 tons in March 2024"
    assert build_sql("TOTAL_TONNAGE", extract_parameters(question), question) == (
        "SELECT SUM(qty_ton) AS total_tonnage FROM production_summary "
        "WHERE date BETWEEN '2024-03-01' AND '2024-03-31' AND qty_ton > 500"
    )


def test_threshold_in_unrecorded_unit_declines() -> None:
    params = ParameterBag(
        shift=["A"],
        numeric_filter=NumericFilter(operator=">", value=5.0),
        measurement=Measurement(value=5.0, unit="km"),
    )
    assert build_sql("DATA_RETRIEVAL", params) is None
    assert build_sql("SHIFT_SPECIFIC", params) is None


def test_top_n_threshold_applies_to_daily_total() -> None:
    params = ParameterBag(
        n=3,
        numeric_filter=NumericFilter(operator="between", min=100.0, max=200.0),
        measurement=Measurement(value=100.0, unit="trip"),
    )
    assert build_sql("TOP_N_RANKING", params, "top 3 days by trips") == (
        "SELECT date, SUM(total_trips) AS total FROM production_summary "
        "GROUP BY date HAVING SUM(total_trips) BETWEEN 100 AND 200 "
        "ORDER BY total DESC LIMIT 3"
    )


def test_trip_threshold_becomes_having() -> None:
    params = ParameterBag(
        equipment_ids=["EX-189"],
        numeric_filter=NumericFilter(operator=">", value=50.0),
        measurement=Measurement(value=50.0, unit="trip"),
    )
    assert build_sql("EQUIPMENT_SPECIFIC_PRODUCTION", params) == (
        "SELECT excavator, SUM(trip_count) AS total_trips, COUNT(DISTINCT trip_date) AS active_days "
        "FROM trip_summary_by_date WHERE excavator = 'EX-189' GROUP BY excavator "
        "HAVING SUM(trip_count) > 50 ORDER BY total_trips DESC"
    )


def test_equipment_specific_without_ids_declines() -> None:
    assert build_sql("EQUIPMENT_SPECIFIC_PRODUCTION", ParameterBag()) is None


def test_ordinal_row() -> None:
    assert build_sql("ORDINAL_ROW_QUERY", ParameterBag(row_number=5)) == (
        "SELECT * FROM production_summary ORDER BY date ASC LIMIT 1 OFFSET 4"
    )
    assert build_sql("ORDINAL_ROW_QUERY", ParameterBag()) is None


def test_total_tonnage_for_month() -> None:
    params = ParameterBag(parsed_date=parse_date("January 2024"))
    assert build_sql("TOTAL_TONNAGE", params) == (
        "SELECT SUM(qty_ton) AS total_tonnage FROM production_summary "
        "WHERE date BETWEEN '2024-01-01' AND '2024-01-31'"
    )


def test_total_trips_grouped_by_month() -> None:
    params = ParameterBag(months=[1, 3], is_multi_month=True, year=2024)
    assert build_sql("TOTAL_TRIPS", params) == (
        "SELECT EXTRACT(MONTH FROM date) AS month, SUM(total_trips) AS total_trips "
        "FROM production_summary "
        "WHERE EXTRACT(MONTH FROM date) IN (1, 3) AND EXTRACT(YEAR FROM date) = 2024 "
        "GROUP BY month ORDER BY month"
    )


def test_bottom_n_days() -> None:
    params = ParameterBag(n=5, rank_type="bottom")
    assert build_sql("TOP_N_RANKING", params, "bottom 5 days by tonnage") == (
        "SELECT date, SUM(qty_ton) AS total FROM production_summary "
        "GROUP BY date ORDER BY total ASC LIMIT 5"
    )


def test_statistical_median() -> None:
    assert build_sql("STATISTICAL_QUERY", ParameterBag(), "median tonnage") == (
        "SELECT PERCENTILE_CONT(0.5) WITHIN GROUP (ORDER BY qty_ton) AS median_value "
        "FROM production_summary"
    )


def test_shift_comparison() -> None:
    params = ParameterBag(comparison=Comparison("A", "B"), comparison_type="shift")
    assert build_sql("COMPARISON_QUERY", params, "compare shift A and shift B tonnage") == (
        "SELECT shift, SUM(qty_ton) AS total FROM production_summary "
        "WHERE shift IN ('A', 'B') GROUP BY shift ORDER BY shift"
    )


def test_equipment_comparison_is_not_a_generic_comparison() -> None:
    params = ParameterBag(comparison=Comparison("BB-001", "BB-002"), comparison_type="equipment")
    assert build_sql("COMPARISON_QUERY", params) is None


def test_equipment_combination() -> None:
    question = "which tippers worked with EX-189"
    params = ParameterBag(equipment_ids=["EX-189"])
    assert build_sql("EQUIPMENT_COMBINATION", params, question) == (
        "SELECT tipper_id, excavator, SUM(trip_count) AS total_trips FROM trip_summary_by_date "
        "WHERE excavator = 'EX-189' GROUP BY tipper_id, excavator "
        "ORDER BY total_trips DESC LIMIT 10"
    )
    # Tonnage is not recorded per equipment pair
    assert build_sql("EQUIPMENT_COMBINATION", params, "tonnage of tippers with EX-189") is None


def test_data_retrieval_needs_a_filter() -> None:
    assert build_sql("DATA_RETRIEVAL", ParameterBag()) is None
    assert build_sql("DATA_RETRIEVAL", ParameterBag(shift=["A"])) == (
        "SELECT * FROM production_summary WHERE shift = 'A' ORDER BY date, shift"
    )


def test_unsupported_intent() -> None:
    assert build_sql("ADVISORY_QUERY", ParameterBag()) is None
    assert build_sql(None, ParameterBag()) is None


@pytest.mark.parametrize("intent", sorted(BUILDERS))
def test_built_statements_pass_safety_validation(intent: str) -> None:
    params = ParameterBag(
        row_number=2,
        n=3,
        year=2024,
        shift=["A"],
        equipment_ids=["BB-001", "EX-2"],
        comparison=Comparison("january", "march 2024"),
        comparison_type="month",
        route_or_face="R1",
    )
    sql = build_sql(intent, params, "show trips")
    assert sql is not None
    assert validate_sql(sql) == sql


def test_builder_is_idempotent() -> None:
    question = "total tonnage for January and February 2024 on shift B"
    params = extract_parameters(question)
    first = build_sql("TOTAL_TONNAGE", params, question)
    assert first is not None
    assert build_sql("TOTAL_TONNAGE", params, question) == first
    assert params.to_dict() == extract_parameters(question).to_dict()
