from decimal import Decimal

import pytest
from fastapi import HTTPException
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker

from rallyresults.database import Base
from rallyresults.models import Rally, RallyEntry
from rallyresults.rules import Stage
from rallyresults.services import (
    car_results,
    delete_rally,
    group_results,
    import_rally,
    list_rallies,
    load_rally,
    rally_entries,
    rally_payload,
    rally_summary,
)


HEADER = "SS;Stage name;Nationality;User name;Real name;Group;Car name;time1;time2;time3;Finish realtime;Penalty;Service penalty;Super rally;Progress;Comment"


def _row(stage, user, group, car, time, super_rally="", progress="F", comment=""):
    return f"{stage};SS{stage};EE;{user};{user};{group};{car};;;{time};;;;{super_rally};{progress};{comment}"


CSV = "\n".join(
    [
        HEADER,
        _row(1, "driver1", "group1", "car1", "10.1", comment="good stage"),
        _row(1, "driver2", "group1", "car2", "14.9"),
        _row(1, "driver3", "group2", "car3", "12.0"),
        _row(2, "driver1", "group1", "car1", "20.5"),
        _row(2, "driver2", "group1", "car2", "24.5"),
        _row(2, "driver3", "group2", "car3", "", progress="R"),
        _row(3, "driver1", "group1", "car1", "30.0"),
        _row(3, "driver2", "group1", "car2", "29.0"),
        _row(3, "driver3", "group2", "car3", "40.0", super_rally="1"),
    ]
)


def _session() -> Session:
    engine = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=True, autocommit=False)
    return SessionLocal()


def test_import_and_rebuild_rally():
    db = _session()

    rally = import_rally(db, "Rally Wales", CSV)
    db.commit()

    assert rally_summary(db, rally) == {
        "name": "Rally Wales",
        "stage_count": 3,
        "driver_count": 3,
        "entry_count": 9,
    }

    entries = rally_entries(db, rally)
    assert [e.user_name for e in entries[:3]] == ["driver1", "driver2", "driver3"]
    assert entries[0].stage_time == Decimal("10.1")
    assert entries[0].comment == "good stage"
    assert entries[5].finished is False
    assert entries[5].stage_time == Decimal(0)
    assert entries[8].super_rally is True

    data = load_rally(db, "Rally Wales")
    assert data.stages == [Stage(1, "SS1"), Stage(2, "SS2"), Stage(3, "SS3")]
    assert [d.name for d in data.all_results] == ["driver1", "driver2", "driver3"]

    driver3 = data.all_results[2]
    assert [r.stage_number for r in driver3.results] == [1, 3]
    assert all(not r.rally_finished for r in driver3.results)
    assert driver3.results[1].overall_time == Decimal("52.0")

    driver2 = data.all_results[1]
    assert [(r.stage_position, r.overall_position) for r in driver2.results] == [(3, 3), (2, 2), (1, 3)]

    db.close()


def test_group_and_car_payloads_are_subset_ranked():
    db = _session()
    import_rally(db, "Rally Wales", CSV)
    db.commit()

    group2 = group_results(db, "Rally Wales", "group2")
    assert group2["group"] == "group2"
    assert [r["stage_position"] for r in group2["results"][0]["results"]] == [1, 1]

    car2 = car_results(db, "Rally Wales", "group1", "car2")
    assert car2["car"] == "car2"
    stage1 = car2["results"][0]["results"][0]
    assert (stage1["stage_position"], stage1["overall_position"]) == (1, 1)
    assert stage1["stage_time"] == 14.9

    with pytest.raises(HTTPException) as excinfo:
        group_results(db, "Rally Wales", "group9")
    assert excinfo.value.status_code == 404
    with pytest.raises(HTTPException):
        car_results(db, "Rally Wales", "group2", "car1")

    db.close()


def test_payload_times_are_numbers():
    db = _session()
    import_rally(db, "Rally Wales", CSV)
    db.commit()

    payload = rally_payload(load_rally(db, "Rally Wales"))
    stage2 = payload["all_results"][0]["results"][1]
    assert stage2["overall_time"] == 30.6
    assert payload["stages"][0] == {"number": 1, "name": "SS1"}
    assert [c["car"] for c in payload["car_results"]] == ["car1", "car2", "car3"]

    db.close()


def test_reimport_replaces_entries():
    db = _session()
    import_rally(db, "Rally Wales", CSV)
    db.commit()
    import_rally(db, "Rally Wales", "\n".join([HEADER, _row(1, "solo", "g", "c", "5")]))
    db.commit()

    assert db.scalars(select(Rally)).all()[0].name == "Rally Wales"
    assert len(db.scalars(select(RallyEntry)).all()) == 1
    assert [r["name"] for r in list_rallies(db)] == ["Rally Wales"]

    db.close()


def test_malformed_import_is_rejected_without_changes():
    db = _session()

    with pytest.raises(HTTPException) as excinfo:
        import_rally(db, "Broken", "\n".join([HEADER, "1;SS1;too;short"]))
    assert excinfo.value.status_code == 400
    assert "line 2" in excinfo.value.detail
    db.rollback()
    assert list_rallies(db) == []

    db.close()


def test_unreadable_csv_is_rejected():
    db = _session()

    with pytest.raises(HTTPException) as excinfo:
        import_rally(db, "Broken", HEADER + "\n" + _row(1, "d", "g", "c", "10.1", comment="broke\rdown") + "\n")
    assert excinfo.value.status_code == 400
    db.rollback()
    assert list_rallies(db) == []

    db.close()


def test_blank_name_is_rejected():
    db = _session()

    with pytest.raises(HTTPException) as excinfo:
        import_rally(db, "   ", CSV)
    assert excinfo.value.status_code == 400

    db.close()


def test_delete_rally():
    db = _session()
    import_rally(db, "Rally Wales", CSV)
    db.commit()

    delete_rally(db, "Rally Wales")
    db.commit()
    assert list_rallies(db) == []
    assert db.scalars(select(RallyEntry)).all() == []

    with pytest.raises(HTTPException) as excinfo:
        load_rally(db, "Rally Wales")
    assert excinfo.value.status_code == 404

    db.close()
