from __future__ import annotations

import pytest

from mrv.ingestion.adapters import GlobalSectorAdapter, OperatorGenericAdapter
from mrv.ingestion.adapters.global_sector import METHOD, synthetic_facility_name
from mrv.storage import Facility, MemoryStore, Observation


def _global_row(**overrides):
    row = {
        "sector": "Power",
        "subsector": "electricity-generation",
        "iso3_country": "USA",
        "start_time": "2021-01-01T00:00:00Z",
        "temporal_granularity": "annual",
        "emissions_quantity": "1250.5",
        "emissions_quantity_units": "tonnes_co2e",
    }
    row.update(overrides)
    return row


def test_global_sector_valid_row_is_normalized():
    result = GlobalSectorAdapter().validate(_global_row())

    assert result.ok
    assert result.fields["sector_slug"] == "power"
    assert result.fields["subsector"] == "electricity-generation"
    assert result.fields["year"] == 2021
    assert result.fields["month"] is None
    assert result.fields["granularity"] == "annual"
    assert result.fields["quantity"] == 1250.5
    assert result.fields["meta"] == {"original_sector": "Power", "sector_confidence": 1.0}


@pytest.mark.parametrize(
    "overrides, reason",
    [
        ({"sector": "interplanetary shipping"}, "unrecognized_sector"),
        ({"start_time": "unknown"}, "bad_year"),
        ({"temporal_granularity": "weekly"}, "unsupported_granularity"),
        ({"emissions_quantity": ""}, "missing_quantity"),
        ({"emissions_quantity": "12 t"}, "non_numeric_quantity"),
        ({"emissions_quantity": "inf"}, "non_numeric_quantity"),
        ({"temporal_granularity": "monthly", "start_time": "2021"}, "bad_month"),
        ({"temporal_granularity": "m", "start_time": "2021-13-01"}, "bad_month"),
    ],
)
def test_global_sector_rejections(overrides, reason):
    result = GlobalSectorAdapter().validate(_global_row(**overrides))
    assert not result.ok
    assert result.reason == reason
    assert result.fields == {}


def test_global_sector_checks_sector_before_year():
    result = GlobalSectorAdapter().validate(_global_row(sector="zzz", start_time="bad"))
    assert result.reason == "unrecognized_sector"
    assert result.meta == {"raw_sector": "zzz", "confidence": 0.0}


def test_global_sector_monthly_row_keeps_month_and_default_unit():
    result = GlobalSectorAdapter().validate(
        _global_row(temporal_granularity="Monthly", start_time="2021-07-01", emissions_quantity_units="")
    )
    assert result.ok
    assert result.fields["month"] == 7
    assert result.fields["unit"] == "tonnes_co2e"


def test_global_sector_upsert_creates_sector_and_synthetic_facility():
    store = MemoryStore()
    adapter = GlobalSectorAdapter()
    candidate = adapter.validate(_global_row(emissions_quantity="2", emissions_quantity_units="kt")).fields

    result = adapter.upsert(store, candidate, dataset_version="v4.7.0", duplicate_policy="replace_if_newer")

    assert result.action == "inserted"
    facility = store.find_facility_by_name("power electricity-generation (sector aggregate)")
    assert facility is not None
    assert facility.meta["kind"] == "sector_aggregate"
    assert facility.meta["origin"]["example_country"] == "USA"
    assert store.get_sector(facility.sector_id).code == "power"
    observation = store.find_observation((facility.facility_id, 2021, None, "observed"))
    assert observation.co2e_tonnes == 2000.0
    assert observation.method == METHOD
    assert observation.scope == 1


def test_synthetic_facility_name_without_subsector():
    assert synthetic_facility_name("waste", None) == "waste (sector aggregate)"


def _operator_row(**overrides):
    row = {"facility_name": "Plant A", "year": "2022", "co2e_tonnes": "106000"}
    row.update(overrides)
    return row


def test_operator_detection_accepts_tonnes_synonyms():
    adapter = OperatorGenericAdapter()
    assert adapter.detect(["Facility_Name", "Year", "tCO2e"])
    assert not adapter.detect(["facility_name", "year"])


def test_operator_valid_row_defaults():
    result = OperatorGenericAdapter().validate(_operator_row(co2e_tonnes="", co2e_t="12.5"))
    assert result.ok
    assert result.fields == {
        "facility_name": "Plant A",
        "year": 2022,
        "month": None,
        "tonnes": 12.5,
        "source": "reported",
        "scope": None,
        "method": None,
        "notes": None,
    }


@pytest.mark.parametrize(
    "overrides, reason",
    [
        ({"facility_name": "  "}, "missing_facility_name"),
        ({"year": "2022.5"}, "bad_year"),
        ({"year": "twenty"}, "bad_year"),
        ({"month": "13"}, "bad_month"),
        ({"co2e_tonnes": "n/a"}, "bad_tonnes"),
        ({"scope": "4"}, "bad_scope"),
        ({"source": "guessed"}, "bad_source"),
    ],
)
def test_operator_rejections(overrides, reason):
    result = OperatorGenericAdapter().validate(_operator_row(**overrides))
    assert not result.ok
    assert result.reason == reason


def test_operator_unknown_facility_is_skipped_not_created():
    store = MemoryStore()
    adapter = OperatorGenericAdapter()
    candidate = adapter.validate(_operator_row(facility_name="Plant Z")).fields

    result = adapter.upsert(store, candidate, dataset_version="v1", duplicate_policy="replace_if_newer")

    assert result.action == "skip_unknown_facility"
    assert store.list_facilities() == []
    assert store.list_observations() == []


def test_operator_replace_keeps_stored_method_and_scope_when_absent():
    store = MemoryStore()
    facility = store.create_facility(Facility(name="Plant A"))
    store.insert_observation(
        Observation(
            facility_id=facility.facility_id,
            year=2022,
            co2e_tonnes=90.0,
            source="reported",
            scope=2,
            method="calculated",
            dataset_version="v1",
        )
    )
    adapter = OperatorGenericAdapter()
    candidate = adapter.validate(_operator_row(co2e_tonnes="95")).fields

    result = adapter.upsert(store, candidate, dataset_version="v2", duplicate_policy="replace_if_newer")

    assert result.action == "replaced"
    stored = store.find_observation((facility.facility_id, 2022, None, "reported"))
    assert stored.co2e_tonnes == 95.0
    assert stored.scope == 2
    assert stored.method == "calculated"
    assert stored.dataset_version == "v2"


def test_operator_other_policies_always_report_duplicates():
    store = MemoryStore()
    facility = store.create_facility(Facility(name="Plant A"))
    store.insert_observation(
        Observation(facility_id=facility.facility_id, year=2022, co2e_tonnes=90.0, source="reported", dataset_version="v1")
    )
    adapter = OperatorGenericAdapter()
    candidate = adapter.validate(_operator_row()).fields

    result = adapter.upsert(store, candidate, dataset_version="v9", duplicate_policy="keep_existing")

    assert result.action == "duplicate"
    assert store.find_observation((facility.facility_id, 2022, None, "reported")).co2e_tonnes == 90.0


def test_first_insert_lost_to_a_concurrent_writer_falls_back_to_the_duplicate_policy(monkeypatch):
    store = MemoryStore()
    facility = store.create_facility(Facility(name="Plant A"))
    real_find = store.find_facility_by_name

    def _find_then_lose_the_race(name):
        found = real_find(name)
        if store.find_observation((facility.facility_id, 2022, None, "reported")) is None:
            store.insert_observation(
                Observation(
                    facility_id=facility.facility_id,
                    year=2022,
                    co2e_tonnes=90.0,
                    source="reported",
                    dataset_version="v1",
                )
            )
        return found

    monkeypatch.setattr(store, "find_facility_by_name", _find_then_lose_the_race)
    adapter = OperatorGenericAdapter()
    candidate = adapter.validate(_operator_row(co2e_tonnes="95")).fields

    newer = adapter.upsert(store, candidate, dataset_version="v2", duplicate_policy="replace_if_newer")
    same = adapter.upsert(store, candidate, dataset_version="v2", duplicate_policy="replace_if_newer")

    assert (newer.action, same.action) == ("replaced", "duplicate")
    assert len(store.list_observations()) == 1
    assert store.find_observation((facility.facility_id, 2022, None, "reported")).co2e_tonnes == 95.0
