from __future__ import annotations

import pytest

from mrv.analytics import overview_by_sector, sector_deep_dive
from mrv.analytics.overview import DEEP_DIVE_SPAN_YEARS
from mrv.storage import Facility, MemoryStore, Observation


def test_overview_groups_observed_totals_by_sector_and_year():
    store = MemoryStore()
    power = store.upsert_sector("power", "power")
    plant = store.create_facility(Facility(name="Plant A", sector_id=power.sector_id))
    synthetic = store.create_facility(Facility(name="waste (sector aggregate)", meta={"sector": "waste"}))
    orphan = store.create_facility(Facility(name="Unlinked"))
    rows = [
        (plant, 2016, "observed", 10.0),
        (plant, 2017, "observed", 12.0),
        (plant, 2017, "reported", 500.0),
        (plant, 2030, "observed", 99.0),
        (synthetic, 2017, "observed", 3.0),
        (orphan, 2016, "observed", 1.0),
    ]
    for facility, year, source, tonnes in rows:
        store.insert_observation(
            Observation(facility_id=facility.facility_id, year=year, co2e_tonnes=tonnes, source=source)
        )

    overview = overview_by_sector(store)

    assert overview["from"] == 2015
    assert overview["to"] == 2025
    assert overview["years"] == [2016, 2017]
    assert overview["series"] == {
        "power": [{"year": 2016, "value": 10.0}, {"year": 2017, "value": 12.0}],
        "unassigned": [{"year": 2016, "value": 1.0}],
        "waste": [{"year": 2017, "value": 3.0}],
    }


def test_overview_empty_store_and_bad_range():
    store = MemoryStore()
    assert overview_by_sector(store, 2020, 2021) == {"from": 2020, "to": 2021, "series": {}, "years": []}
    with pytest.raises(ValueError):
        overview_by_sector(store, 2022, 2021)


def _synthetic(store, sector, subsector=None):
    name = f"{sector} {subsector} (sector aggregate)" if subsector else f"{sector} (sector aggregate)"
    return store.create_facility(Facility(name=name, meta={"sector": sector, "subsector": subsector}))


def _observe(store, facility, year, tonnes, source="observed"):
    store.insert_observation(
        Observation(facility_id=facility.facility_id, year=year, co2e_tonnes=tonnes, source=source)
    )


def test_sector_deep_dive_reports_yoy_and_top_subsectors():
    store = MemoryStore()
    generation = _synthetic(store, "power", "electricity-generation")
    heat = _synthetic(store, "power", "heat")
    other = _synthetic(store, "power")
    waste = _synthetic(store, "waste", "landfill")
    _observe(store, generation, 2020, 0.0)
    _observe(store, generation, 2021, 100.0)
    _observe(store, generation, 2022, 80.0)
    _observe(store, heat, 2022, 50.0)
    _observe(store, other, 2021, 10.0)
    _observe(store, generation, 2022, 999.0, source="reported")
    _observe(store, waste, 2022, 7.0)

    deep_dive = sector_deep_dive(store, 2020, 2022)

    assert (deep_dive["from"], deep_dive["to"], deep_dive["years"]) == (2020, 2022, [2020, 2021, 2022])
    power, waste_sector = deep_dive["sectors"]
    assert power["sector"] == "power"
    assert power["totals"] == [
        {"year": 2020, "value": 0.0},
        {"year": 2021, "value": 110.0},
        {"year": 2022, "value": 130.0},
    ]
    # No percentage against a zero year.
    assert power["yoy"][0] == {"year": 2021, "delta": 110.0, "pct": None}
    assert power["yoy"][1]["pct"] == pytest.approx(100.0 * 20.0 / 110.0)
    assert power["latest"] == {"year": 2022, "value": 130.0, "pct_change": power["yoy"][1]["pct"], "delta": 20.0}
    assert power["breakdown"] == [
        {"subsector": "heat", "current": 50.0, "previous": 0.0, "delta": 50.0},
        {"subsector": "electricity-generation", "current": 80.0, "previous": 100.0, "delta": -20.0},
        {"subsector": "Other", "current": 0.0, "previous": 10.0, "delta": -10.0},
    ]

    assert waste_sector["sector"] == "waste"
    assert waste_sector["yoy"] == []
    assert waste_sector["latest"] == {"year": 2022, "value": 7.0, "pct_change": None, "delta": None}
    assert waste_sector["breakdown"] == [{"subsector": "landfill", "current": 7.0, "previous": 0.0, "delta": 7.0}]


def test_sector_deep_dive_keeps_five_largest_movers():
    store = MemoryStore()
    for index in range(7):
        facility = _synthetic(store, "transport", f"mode-{index}")
        _observe(store, facility, 2021, 0.0)
        _observe(store, facility, 2022, float(index + 1))

    (transport,) = sector_deep_dive(store, 2021, 2022)["sectors"]

    assert [entry["subsector"] for entry in transport["breakdown"]] == [f"mode-{i}" for i in (6, 5, 4, 3, 2)]


def test_sector_deep_dive_defaults_to_recent_years_and_rejects_bad_range():
    store = MemoryStore()
    deep_dive = sector_deep_dive(store)
    assert deep_dive["to"] - deep_dive["from"] == DEEP_DIVE_SPAN_YEARS
    assert deep_dive["sectors"] == []
    with pytest.raises(ValueError):
        sector_deep_dive(store, 2023, 2022)
