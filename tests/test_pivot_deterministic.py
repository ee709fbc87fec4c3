"""Contract tests for the pivot aggregation engine.

Verifies that:
- Field values and records enforce their type tags
- Include/exclude filters compose and short-circuit
- Group keys are built in field order and sorted by their text form
- Accumulators hold exact sum/count/mean per group and value field
- The scan aggregator honours row limits and writes the documented CSV layout
- The in-memory aggregator merges its four typed filter maps
"""
from __future__ import annotations

import csv
import logging
import random
from pathlib import Path

import pytest
from pydantic import ValidationError

from pivot_tables.aggregation import (
    Accumulator,
    AggregationTable,
    CsvRecord,
    FieldPredicate,
    FilterSpec,
    GroupKey,
    InvariantViolationError,
    MissingFieldError,
    NumberValue,
    PivotConfigError,
    TextValue,
    TypedRecord,
    TypeMismatchError,
    as_number,
    as_text,
    build_key,
    in_memory_pivot,
    normalize_group_fields,
    scan_to_pivot,
    tag_value,
)
from pivot_tables.repositories import CsvRecordSource


# ============================================================================
# Fixtures
# ============================================================================

SCENARIO = [
    {"CARRIER": "UA", "ORIGIN": "JFK", "PASSENGERS": 100},
    {"CARRIER": "UA", "ORIGIN": "JFK", "PASSENGERS": 50},
    {"CARRIER": "AA", "ORIGIN": "LAX", "PASSENGERS": 30},
]

FLIGHTS = [
    {"CARRIER": "UA", "ORIGIN": "JFK", "DEST_COUNTRY": "US", "PASSENGERS": 100.0, "SEATS": 150.0},
    {"CARRIER": "UA", "ORIGIN": "JFK", "DEST_COUNTRY": "GB", "PASSENGERS": 50.0, "SEATS": 150.0},
    {"CARRIER": "AA", "ORIGIN": "LAX", "DEST_COUNTRY": "US", "PASSENGERS": 30.0, "SEATS": 100.0},
    {"CARRIER": "DL", "ORIGIN": "ATL", "DEST_COUNTRY": "MX", "PASSENGERS": 80.0, "SEATS": 90.0},
    {"CARRIER": "AA", "ORIGIN": "JFK", "DEST_COUNTRY": "FR", "PASSENGERS": 120.0, "SEATS": 200.0},
    {"CARRIER": "UA", "ORIGIN": "ORD", "DEST_COUNTRY": "US", "PASSENGERS": 70.0, "SEATS": 120.0},
]


def _write_csv(path: Path, rows: list[dict]) -> Path:
    with open(path, "w", newline="", encoding="utf-8") as fh:
        writer = csv.DictWriter(fh, fieldnames=list(rows[0].keys()))
        writer.writeheader()
        writer.writerows(rows)
    return path


@pytest.fixture
def flights_csv(tmp_path: Path) -> Path:
    return _write_csv(tmp_path / "flights.csv", FLIGHTS)


@pytest.fixture
def scenario_csv(tmp_path: Path) -> Path:
    return _write_csv(tmp_path / "scenario.csv", SCENARIO)


def _csv_record(row: dict) -> CsvRecord:
    index = {name: pos for pos, name in enumerate(row)}
    return CsvRecord(index, [str(v) for v in row.values()])


class ListSink:
    def __init__(self) -> None:
        self.rows: list[list[str]] = []

    def write_row(self, fields) -> None:
        self.rows.append(list(fields))


# ============================================================================
# Field Values
# ============================================================================

class TestFieldValues:
    def test_tag_text(self):
        assert tag_value("CARRIER", "UA") == TextValue("UA")

    def test_tag_int_becomes_float(self):
        v = tag_value("PASSENGERS", 3)
        assert v == NumberValue(3.0)
        assert isinstance(v.value, float)

    def test_tag_bool_rejected(self):
        with pytest.raises(TypeMismatchError):
            tag_value("ACTIVE", True)

    def test_tag_none_rejected(self):
        with pytest.raises(TypeMismatchError) as info:
            tag_value("ORIGIN", None)
        assert info.value.field == "ORIGIN"

    def test_as_text_on_number(self):
        with pytest.raises(TypeMismatchError) as info:
            as_text("PASSENGERS", NumberValue(1.0))
        assert info.value.expected == "text"
        assert info.value.actual == "numeric"

    def test_as_number_on_text(self):
        with pytest.raises(TypeMismatchError):
            as_number("CARRIER", TextValue("UA"))

    def test_as_number_plain_float(self):
        assert as_number("PASSENGERS", 2.5) == 2.5


# ============================================================================
# Records
# ============================================================================

class TestRecords:
    def test_csv_record_text_and_number(self):
        rec = _csv_record({"CARRIER": "UA", "PASSENGERS": "12.5"})
        assert rec.text("CARRIER") == "UA"
        assert rec.number("PASSENGERS") == 12.5
        assert rec.value("CARRIER") == TextValue("UA")

    def test_csv_record_unparseable_number(self):
        rec = _csv_record({"PASSENGERS": "n/a"})
        with pytest.raises(TypeMismatchError):
            rec.number("PASSENGERS")

    def test_csv_record_missing_field(self):
        rec = _csv_record({"CARRIER": "UA"})
        with pytest.raises(MissingFieldError) as info:
            rec.text("ORIGIN")
        assert info.value.field == "ORIGIN"

    def test_csv_record_short_row_reads_empty(self):
        rec = CsvRecord({"CARRIER": 0, "ORIGIN": 1}, ["UA"])
        assert rec.text("ORIGIN") == ""

    def test_typed_record_projections(self):
        rec = TypedRecord.from_mapping({"CARRIER": "UA", "PASSENGERS": 10})
        assert rec.text("CARRIER") == "UA"
        assert rec.number("PASSENGERS") == 10.0
        with pytest.raises(TypeMismatchError):
            rec.text("PASSENGERS")
        with pytest.raises(TypeMismatchError):
            rec.number("CARRIER")

    def test_typed_record_missing_field(self):
        rec = TypedRecord.from_mapping({"CARRIER": "UA"})
        with pytest.raises(MissingFieldError):
            rec.value("ORIGIN")


# ============================================================================
# Filter Predicates
# ============================================================================

class TestFieldPredicate:
    def test_text_kind_inferred(self):
        p = FieldPredicate.model_validate(["UA", "AA"])
        assert p.kind == "text"
        assert "UA" in p
        assert "DL" not in p

    def test_numeric_kind_inferred(self):
        p = FieldPredicate.model_validate([1, 2.5])
        assert p.kind == "numeric"
        assert p.values == (1.0, 2.5)
        assert 1.0 in p

    def test_mixed_values_rejected(self):
        with pytest.raises(ValidationError):
            FieldPredicate.model_validate(["UA", 1])

    def test_explicit_numeric_rejects_strings(self):
        with pytest.raises(ValidationError):
            FieldPredicate.model_validate({"kind": "numeric", "values": ["1"]})

    def test_bool_values_rejected(self):
        with pytest.raises(ValidationError):
            FieldPredicate.model_validate([True])

    def test_filter_spec_coerces_nulls(self):
        spec = FilterSpec.model_validate({"include": None, "exclude": None})
        assert spec.is_empty()

    def test_from_typed_conflict(self):
        with pytest.raises(PivotConfigError):
            FilterSpec.from_typed(text_include={"YEAR": ["2024"]}, numeric_include={"YEAR": [2024]})

    def test_from_typed_kinds(self):
        spec = FilterSpec.from_typed(
            text_include={"CARRIER": ["UA"]},
            text_exclude={"DEST_COUNTRY": ["US"]},
            numeric_include={"SEATS": [150]},
            numeric_exclude={"PASSENGERS": [0]},
        )
        assert spec.include["CARRIER"].kind == "text"
        assert spec.include["SEATS"].kind == "numeric"
        assert spec.exclude["DEST_COUNTRY"].kind == "text"
        assert spec.exclude["PASSENGERS"].kind == "numeric"
        assert spec.fields() == ["CARRIER", "SEATS", "DEST_COUNTRY", "PASSENGERS"]

    def test_from_typed_rejects_wrong_value_type(self):
        with pytest.raises(PivotConfigError):
            FilterSpec.from_typed(numeric_include={"SEATS": ["150"]})

    def test_merge_intersects_includes_and_unions_excludes(self):
        a = FilterSpec(include={"CARRIER": ["UA", "AA"]}, exclude={"ORIGIN": ["JFK"]})
        b = FilterSpec(include={"CARRIER": ["AA", "DL"]}, exclude={"ORIGIN": ["LAX"]})
        merged = a.merge(b)
        assert merged.include["CARRIER"].values == ("AA",)
        assert set(merged.exclude["ORIGIN"].values) == {"JFK", "LAX"}


# ============================================================================
# Row Filter
# ============================================================================

class TestRowFilter:
    ROW = TypedRecord.from_mapping({"CARRIER": "UA", "ORIGIN": "JFK", "PASSENGERS": 100})

    def test_empty_spec_passes(self):
        assert FilterSpec().passes(self.ROW)

    def test_include_member_passes(self):
        assert FilterSpec(include={"CARRIER": ["UA", "AA"]}).passes(self.ROW)

    def test_include_non_member_fails(self):
        assert not FilterSpec(include={"CARRIER": ["DL"]}).passes(self.ROW)

    def test_exclude_member_fails(self):
        assert not FilterSpec(exclude={"CARRIER": ["UA"]}).passes(self.ROW)

    def test_include_and_exclude_same_value_rejects(self):
        spec = FilterSpec(include={"CARRIER": ["UA", "AA"]}, exclude={"CARRIER": ["UA"]})
        assert not spec.passes(self.ROW)

    def test_numeric_predicate(self):
        assert FilterSpec(include={"PASSENGERS": [100]}).passes(self.ROW)
        assert not FilterSpec(exclude={"PASSENGERS": [100.0]}).passes(self.ROW)

    def test_numeric_predicate_on_csv_record_parses_cell(self):
        rec = _csv_record({"CARRIER": "UA", "DISTANCE": "250"})
        assert FilterSpec(include={"DISTANCE": [250]}).passes(rec)

    def test_text_predicate_on_numeric_field_raises(self):
        with pytest.raises(TypeMismatchError):
            FilterSpec(include={"PASSENGERS": ["100"]}).passes(self.ROW)

    def test_numeric_predicate_on_text_field_raises(self):
        with pytest.raises(TypeMismatchError):
            FilterSpec(exclude={"CARRIER": [1]}).passes(self.ROW)

    def test_missing_filter_field_raises(self):
        with pytest.raises(MissingFieldError):
            FilterSpec(include={"REGION": ["D"]}).passes(self.ROW)

    def test_short_circuits_on_first_failing_field(self):
        spec = FilterSpec(include={"CARRIER": ["DL"], "REGION": ["D"]})
        assert not spec.passes(self.ROW)


# ============================================================================
# Group Keys
# ============================================================================

class TestGroupKey:
    def test_build_key_in_field_order(self):
        row = TypedRecord.from_mapping({"CARRIER": "UA", "ORIGIN": "JFK"})
        assert build_key(row, ["CARRIER", "ORIGIN"]).text == "UA|JFK"
        assert build_key(row, ["ORIGIN", "CARRIER"]).text == "JFK|UA"

    def test_build_key_missing_field(self):
        row = TypedRecord.from_mapping({"CARRIER": "UA"})
        with pytest.raises(MissingFieldError):
            build_key(row, ["CARRIER", "ORIGIN"])

    def test_build_key_numeric_field_rejected(self):
        row = TypedRecord.from_mapping({"CARRIER": "UA", "YEAR": 2024})
        with pytest.raises(TypeMismatchError):
            build_key(row, ["CARRIER", "YEAR"])

    def test_build_key_requires_fields(self):
        row = TypedRecord.from_mapping({"CARRIER": "UA"})
        with pytest.raises(PivotConfigError):
            build_key(row, [])

    def test_normalize_joined_form(self):
        assert normalize_group_fields("CARRIER|ORIGIN|REGION") == ["CARRIER", "ORIGIN", "REGION"]
        assert normalize_group_fields(["CARRIER"]) == ["CARRIER"]

    def test_normalize_empty(self):
        with pytest.raises(PivotConfigError):
            normalize_group_fields("")

    def test_embedded_separator_does_not_merge_groups(self):
        rows = [
            {"A": "x|y", "B": "z", "V": 1},
            {"A": "x", "B": "y|z", "V": 2},
        ]
        result = in_memory_pivot(rows, ["A", "B"], ["V"])
        assert len(result) == 2
        assert [g.key.parts for g in result.groups] == [("x", "y|z"), ("x|y", "z")]

    def test_colliding_key_text_lookup(self):
        rows = [
            {"A": "x|y", "B": "z", "V": 1},
            {"A": "x", "B": "y|z", "V": 2},
        ]
        result = in_memory_pivot(rows, ["A", "B"], ["V"])
        assert [row[0] for row in result.rows()] == ["x|y|z", "x|y|z"]
        assert result.get("x|y|z").key.parts == ("x|y", "z")
        assert result.get_parts("x", "y|z").accumulators[0].sum == 2.0
        assert result.get_parts("x", "y", "z") is None


# ============================================================================
# Aggregation Table
# ============================================================================

class TestAggregationTable:
    def test_update_creates_and_accumulates(self):
        table = AggregationTable(["PASSENGERS", "SEATS"])
        key = GroupKey(("UA", "JFK"))
        table.update(key, [NumberValue(100.0), 150.0])
        table.update(key, [50, NumberValue(150.0)])
        assert len(table) == 1
        [group] = table.finalize()
        pax, seats = group.accumulators
        assert (pax.sum, pax.count, pax.mean) == (150.0, 2, 75.0)
        assert (seats.sum, seats.count, seats.mean) == (300.0, 2, 150.0)

    def test_text_value_rejected_without_side_effects(self):
        table = AggregationTable(["PASSENGERS"])
        with pytest.raises(TypeMismatchError):
            table.update(GroupKey(("UA",)), [TextValue("100")])
        assert len(table) == 0

    def test_wrong_value_count(self):
        table = AggregationTable(["PASSENGERS", "SEATS"])
        with pytest.raises(PivotConfigError):
            table.update(GroupKey(("UA",)), [1.0])

    def test_requires_value_fields(self):
        with pytest.raises(PivotConfigError):
            AggregationTable([])

    def test_finalize_sorted_by_key_text(self):
        table = AggregationTable(["V"])
        for parts in [("UA", "JFK"), ("AA", "LAX"), ("DL", "ATL"), ("AA", "JFK")]:
            table.update(GroupKey(parts), [1.0])
        assert [g.key.text for g in table.finalize()] == ["AA|JFK", "AA|LAX", "DL|ATL", "UA|JFK"]

    def test_finalize_is_repeatable(self):
        table = AggregationTable(["V"])
        table.update(GroupKey(("A",)), [2.0])
        assert table.finalize() == table.finalize()

    def test_zero_count_accumulator_is_invariant_violation(self):
        with pytest.raises(InvariantViolationError):
            Accumulator().finalized()


# ============================================================================
# Scan Aggregator
# ============================================================================

class TestScanAggregator:
    def test_concrete_scenario(self, scenario_csv: Path):
        result = scan_to_pivot(CsvRecordSource(scenario_csv), ["PASSENGERS"], ["CARRIER", "ORIGIN"])
        assert result.keys() == ["AA|LAX", "UA|JFK"]
        aa = result.get("AA|LAX").accumulators[0]
        ua = result.get("UA|JFK").accumulators[0]
        assert (aa.sum, aa.count, aa.mean) == (30.0, 1, 30.0)
        assert (ua.sum, ua.count, ua.mean) == (150.0, 2, 75.0)
        assert result.rows_scanned == 3
        assert result.rows_aggregated == 3

    def test_statistics_match_rows(self, flights_csv: Path):
        result = scan_to_pivot(CsvRecordSource(flights_csv), ["PASSENGERS", "SEATS"], "CARRIER")
        for group in result:
            members = [r for r in FLIGHTS if r["CARRIER"] == group.key.text]
            pax, seats = group.accumulators
            assert pax.count == len(members)
            assert pax.sum == pytest.approx(sum(r["PASSENGERS"] for r in members))
            assert seats.sum == pytest.approx(sum(r["SEATS"] for r in members))
            assert pax.mean == pytest.approx(pax.sum / pax.count)

    def test_row_limit_zero_is_empty(self, flights_csv: Path):
        result = scan_to_pivot(CsvRecordSource(flights_csv), ["PASSENGERS"], ["CARRIER"], row_limit=0)
        assert len(result) == 0
        assert result.rows_scanned == 0

    def test_row_limit_counts_rows_before_filtering(self, flights_csv: Path):
        result = scan_to_pivot(
            CsvRecordSource(flights_csv), ["PASSENGERS"], ["CARRIER", "ORIGIN"],
            row_limit=3, filters=FilterSpec(include={"CARRIER": ["AA"]}),
        )
        assert result.keys() == ["AA|LAX"]
        assert result.rows_scanned == 3
        assert result.rows_aggregated == 1

    def test_row_limit_never_reads_past_bound(self):
        pulled = []

        def source():
            for row in FLIGHTS:
                pulled.append(row)
                yield TypedRecord.from_mapping(row)

        scan_to_pivot(source(), ["PASSENGERS"], ["CARRIER"], row_limit=2)
        assert len(pulled) == 2

    def test_unlimited_considers_all_rows(self, flights_csv: Path):
        result = scan_to_pivot(CsvRecordSource(flights_csv), ["PASSENGERS"], ["CARRIER"], row_limit=-1)
        assert result.rows_scanned == len(FLIGHTS)
        assert sum(g.accumulators[0].count for g in result) == len(FLIGHTS)

    def test_invalid_row_limit(self, flights_csv: Path):
        with pytest.raises(PivotConfigError):
            scan_to_pivot(CsvRecordSource(flights_csv), ["PASSENGERS"], ["CARRIER"], row_limit=-2)

    def test_include_exclude_same_value_yields_no_group(self, flights_csv: Path):
        spec = FilterSpec(include={"CARRIER": ["UA", "AA"]}, exclude={"CARRIER": ["UA"]})
        result = scan_to_pivot(CsvRecordSource(flights_csv), ["PASSENGERS"], ["CARRIER"], filters=spec)
        assert result.keys() == ["AA"]

    def test_filtered_out_groups_are_absent(self, flights_csv: Path):
        spec = FilterSpec(exclude={"DEST_COUNTRY": ["US"]})
        result = scan_to_pivot(CsvRecordSource(flights_csv), ["PASSENGERS"], ["CARRIER", "ORIGIN"], filters=spec)
        assert "UA|ORD" not in result.keys()
        assert "AA|LAX" not in result.keys()
        assert all(acc.count > 0 for g in result for acc in g.accumulators)

    def test_order_independent_of_input_order(self):
        rows = [TypedRecord.from_mapping(r) for r in FLIGHTS]
        shuffled = list(rows)
        random.Random(7).shuffle(shuffled)
        a = scan_to_pivot(rows, ["PASSENGERS"], ["CARRIER", "ORIGIN"])
        b = scan_to_pivot(reversed(rows), ["PASSENGERS"], ["CARRIER", "ORIGIN"])
        c = scan_to_pivot(shuffled, ["PASSENGERS"], ["CARRIER", "ORIGIN"])
        assert a.keys() == sorted(a.keys())
        assert a == b == c

    def test_idempotent_over_same_source(self, flights_csv: Path):
        source = CsvRecordSource(flights_csv)
        spec = FilterSpec(include={"CARRIER": ["UA", "AA"]})
        first = scan_to_pivot(source, ["PASSENGERS", "SEATS"], "CARRIER|ORIGIN", filters=spec)
        second = scan_to_pivot(source, ["PASSENGERS", "SEATS"], "CARRIER|ORIGIN", filters=spec)
        assert first == second

    def test_writes_csv_layout(self, scenario_csv: Path, tmp_path: Path):
        out = tmp_path / "pivots" / "pax_by_carrier_origin.csv"
        scan_to_pivot(CsvRecordSource(scenario_csv), ["PASSENGERS"], ["CARRIER", "ORIGIN"], sink=out)
        lines = out.read_text(encoding="utf-8").splitlines()
        assert lines == [
            "CARRIER|ORIGIN,PASSENGERS_Sum,PASSENGERS_Count,PASSENGERS_Mean",
            "AA|LAX,30.000000,1,30.000000",
            "UA|JFK,150.000000,2,75.000000",
        ]

    def test_sink_object_receives_header_then_groups(self, flights_csv: Path):
        sink = ListSink()
        scan_to_pivot(
            CsvRecordSource(flights_csv), ["PASSENGERS", "SEATS"], ["CARRIER"],
            sink=sink, group_label="Carrier",
        )
        assert sink.rows[0] == [
            "Carrier",
            "PASSENGERS_Sum", "PASSENGERS_Count", "PASSENGERS_Mean",
            "SEATS_Sum", "SEATS_Count", "SEATS_Mean",
        ]
        assert [r[0] for r in sink.rows[1:]] == ["AA", "DL", "UA"]
        assert sink.rows[1][1:4] == ["150.000000", "2", "75.000000"]

    def test_missing_value_field_aborts(self, flights_csv: Path):
        with pytest.raises(MissingFieldError):
            scan_to_pivot(CsvRecordSource(flights_csv), ["DEPARTURES"], ["CARRIER"])

    def test_non_numeric_value_field_aborts(self, flights_csv: Path):
        with pytest.raises(TypeMismatchError):
            scan_to_pivot(CsvRecordSource(flights_csv), ["ORIGIN"], ["CARRIER"])

    def test_to_dataframe(self, scenario_csv: Path):
        df = scan_to_pivot(CsvRecordSource(scenario_csv), ["PASSENGERS"], ["CARRIER", "ORIGIN"]).to_dataframe()
        assert list(df.index) == ["AA|LAX", "UA|JFK"]
        assert df.loc["UA|JFK", "PASSENGERS_Mean"] == 75.0


# ============================================================================
# In-Memory Aggregator
# ============================================================================

class TestInMemoryAggregator:
    def test_concrete_scenario_from_mappings(self):
        result = in_memory_pivot(SCENARIO, ["CARRIER", "ORIGIN"], ["PASSENGERS"])
        nested = result.as_nested()
        assert list(nested) == ["AA|LAX", "UA|JFK"]
        assert nested["UA|JFK"]["PASSENGERS"].sum == 150.0
        assert nested["UA|JFK"]["PASSENGERS"].count == 2
        assert nested["UA|JFK"]["PASSENGERS"].mean == 75.0

    def test_matches_scan_over_same_rows(self):
        rows = [TypedRecord.from_mapping(r) for r in FLIGHTS]
        assert in_memory_pivot(rows, "CARRIER|ORIGIN", ["PASSENGERS", "SEATS"]) == scan_to_pivot(
            rows, ["PASSENGERS", "SEATS"], "CARRIER|ORIGIN"
        )

    def test_four_way_filters(self):
        result = in_memory_pivot(
            FLIGHTS, ["CARRIER", "ORIGIN"], ["PASSENGERS"],
            text_include={"CARRIER": ["UA", "AA"]},
            text_exclude={"DEST_COUNTRY": ["FR"]},
            numeric_include={"SEATS": [150.0, 100.0]},
            numeric_exclude={"PASSENGERS": [50.0]},
        )
        assert result.keys() == ["AA|LAX", "UA|JFK"]
        ua = result.get("UA|JFK").accumulators[0]
        assert (ua.sum, ua.count) == (100.0, 1)

    def test_filters_argument_merges_with_typed_maps(self):
        result = in_memory_pivot(
            FLIGHTS, ["CARRIER"], ["PASSENGERS"],
            filters=FilterSpec(include={"CARRIER": ["UA", "AA"]}),
            text_include={"CARRIER": ["AA", "DL"]},
        )
        assert result.keys() == ["AA"]

    def test_conflicting_kinds_rejected(self):
        with pytest.raises(PivotConfigError):
            in_memory_pivot(
                FLIGHTS, ["CARRIER"], ["PASSENGERS"],
                text_exclude={"SEATS": ["150"]},
                numeric_exclude={"SEATS": [150.0]},
            )

    def test_text_filter_on_numeric_field(self):
        with pytest.raises(TypeMismatchError):
            in_memory_pivot(FLIGHTS, ["CARRIER"], ["PASSENGERS"], text_include={"SEATS": ["150"]})

    def test_save_to_csv_false_writes_nothing(self, tmp_path: Path):
        out = tmp_path / "unused.csv"
        result = in_memory_pivot(FLIGHTS, ["CARRIER"], ["PASSENGERS"], save_to_csv=False, pivot_file_path=out)
        assert not out.exists()
        assert result.keys() == ["AA", "DL", "UA"]

    def test_save_to_csv_true_writes_and_returns(self, tmp_path: Path):
        out = tmp_path / "pax_by_carrier.csv"
        result = in_memory_pivot(FLIGHTS, ["CARRIER"], ["PASSENGERS"], save_to_csv=True, pivot_file_path=out)
        with open(out, newline="", encoding="utf-8") as fh:
            written = list(csv.reader(fh))
        assert written[0] == ["CARRIER", "PASSENGERS_Sum", "PASSENGERS_Count", "PASSENGERS_Mean"]
        assert written[1:] == list(result.rows())
        assert written[3] == ["UA", "220.000000", "3", "73.333333"]

    def test_save_to_csv_requires_path(self):
        with pytest.raises(PivotConfigError):
            in_memory_pivot(FLIGHTS, ["CARRIER"], ["PASSENGERS"], save_to_csv=True)

    def test_row_limit(self):
        result = in_memory_pivot(FLIGHTS, ["CARRIER"], ["PASSENGERS"], row_limit=1)
        assert result.keys() == ["UA"]
        assert result.rows_scanned == 1

    def test_completion_log_counts_considered_rows(self, caplog):
        with caplog.at_level(logging.INFO, logger="pivot_tables"):
            in_memory_pivot(FLIGHTS, ["CARRIER"], ["PASSENGERS"], row_limit=2)
        messages = [r.getMessage() for r in caplog.records]
        assert any(m.startswith("Finished processing the 2-row dataset") for m in messages)
