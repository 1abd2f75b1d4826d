from __future__ import annotations

import pytest

from mrv.analytics import anomaly_report, detect_anomalies, facility_series, sector_series
from mrv.analytics.anomaly import MAD_SCALE
from mrv.storage import Facility, MemoryStore, Observation, ObservationNotFound


def _series(values, start=2010):
    return [{"year": start + offset, "value": value} for offset, value in enumerate(values)]


def test_single_spike_is_flagged():
    flagged = detect_anomalies(_series([10, 11, 9, 10, 11, 10, 9, 50]))

    assert len(flagged) == 1
    point = flagged[0]
    assert point["year"] == 2017
    assert point["value"] == 50.0
    assert point["median"] == 10.0
    assert point["mad"] == 1.0
    assert point["score"] == pytest.approx(40 / MAD_SCALE)


def test_short_series_never_flags():
    assert detect_anomalies(_series([1, 1000, 1, 1])) == []
    assert detect_anomalies([]) == []


def test_threshold_is_inclusive_and_configurable():
    series = _series([10, 11, 9, 10, 11, 10, 9, 50])
    assert detect_anomalies(series, z=100.0) == []
    assert len(detect_anomalies(series, z=40 / MAD_SCALE)) == 1


def test_flat_series_flags_any_deviation():
    flagged = detect_anomalies(_series([5, 5, 5, 5, 5, 6]))
    assert [point["value"] for point in flagged] == [6.0]


def _sector_store():
    store = MemoryStore()
    power = store.upsert_sector("power", "power")
    waste = store.upsert_sector("waste", "waste")
    plant = store.create_facility(Facility(name="Plant A", sector_id=power.sector_id))
    other = store.create_facility(Facility(name="Plant B", sector_id=power.sector_id))
    synthetic = store.create_facility(Facility(name="power (sector aggregate)", meta={"sector": "power"}))
    landfill = store.create_facility(Facility(name="Landfill", sector_id=waste.sector_id))
    rows = [
        (plant, 2021, 1, "reported", 10.0),
        (plant, 2021, 2, "reported", 15.0),
        (plant, 2022, None, "reported", 30.0),
        (plant, 2022, None, "observed", 28.0),
        (other, 2021, None, "reported", 5.0),
        (synthetic, 2022, None, "reported", 1.0),
        (landfill, 2021, None, "reported", 999.0),
    ]
    for facility, year, month, source, tonnes in rows:
        store.insert_observation(
            Observation(
                facility_id=facility.facility_id,
                year=year,
                month=month,
                co2e_tonnes=tonnes,
                source=source,
            )
        )
    return store, plant


def test_facility_series_folds_months_into_years():
    store, plant = _sector_store()
    assert facility_series(store, plant.facility_id) == [
        {"year": 2021, "value": 25.0},
        {"year": 2022, "value": 30.0},
    ]
    assert facility_series(store, plant.facility_id, source="observed") == [{"year": 2022, "value": 28.0}]


def test_sector_series_sums_linked_and_synthetic_facilities():
    store, _ = _sector_store()
    assert sector_series(store, "power") == [
        {"year": 2021, "value": 30.0},
        {"year": 2022, "value": 31.0},
    ]
    assert sector_series(store, "cement") == []


def test_anomaly_report_shape_and_argument_checks():
    store, plant = _sector_store()

    report = anomaly_report(store, facility_id=plant.facility_id, z=3.0)
    assert report == {"source": "reported", "z": 3.0, "points": facility_series(store, plant.facility_id), "anomalies": []}

    with pytest.raises(ValueError):
        anomaly_report(store)
    with pytest.raises(ValueError):
        anomaly_report(store, facility_id=plant.facility_id, sector="power")
    with pytest.raises(ValueError, match="source"):
        anomaly_report(store, sector="power", source="estimated")
    with pytest.raises(ObservationNotFound):
        anomaly_report(store, facility_id="missing")
