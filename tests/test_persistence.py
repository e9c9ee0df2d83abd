import threading
import time
from datetime import date

import pytest

from schoolroute.errors import NotFoundError, PersistenceError
from schoolroute.models.domain import (
    AbsenceEvent,
    AbsenceType,
    Point,
    RouteInstance,
    RouteLeg,
    RouteStatus,
    Stop,
)
from schoolroute.persistence.filesystem import FileStorage
from schoolroute.persistence.locks import InstanceLocks
from schoolroute.persistence.store import RouteStore


def _instance(instance_id: str = "I1", on: date = date(2026, 3, 2), leg: RouteLeg = RouteLeg.MORNING) -> RouteInstance:
    return RouteInstance(
        id=instance_id,
        template_id="T1",
        date=on,
        leg=leg,
        stops=[Stop(id=f"{instance_id}-s1", student_id="stu-1", point=Point(0.0, 0.1), order=0)],
    )


def test_file_storage_round_trip(tmp_path):
    storage = FileStorage(root=tmp_path)
    target = storage.snapshot_path("instances", "I1")
    storage.write_json(target, {"id": "I1", "when": date(2026, 3, 2)})

    assert target.exists()
    assert not target.with_suffix(".json.tmp").exists()
    assert storage.read_json(target) == {"id": "I1", "when": "2026-03-02"}


def test_reads_are_isolated_from_committed_state():
    store = RouteStore(storage=None)
    store.save_instance(_instance())

    copy = store.get_instance("I1")
    copy.status = RouteStatus.CANCELLED
    copy.stops[0].order = 9

    fresh = store.get_instance("I1")
    assert fresh.status is RouteStatus.SCHEDULED
    assert fresh.stops[0].order == 0


def test_missing_entities_raise_not_found():
    store = RouteStore(storage=None)
    with pytest.raises(NotFoundError):
        store.get_instance("nope")
    with pytest.raises(NotFoundError):
        store.get_template("nope")
    with pytest.raises(NotFoundError):
        store.get_absence("nope")
    with pytest.raises(NotFoundError):
        store.find_instance_by_stop("nope")


def test_snapshots_are_mirrored_to_disk(tmp_path):
    storage = FileStorage(root=tmp_path)
    store = RouteStore(storage=storage)
    store.save_instance(_instance())

    snapshot = storage.read_json(storage.snapshot_path("instances", "I1"))
    assert snapshot["status"] == "scheduled"
    assert snapshot["stops"][0]["student_id"] == "stu-1"


def test_failed_snapshot_leaves_previous_commit(tmp_path, monkeypatch):
    storage = FileStorage(root=tmp_path)
    store = RouteStore(storage=storage)
    store.save_instance(_instance())

    def broken_write(path, data, *, indent=2):
        raise OSError("read-only file system")

    monkeypatch.setattr(storage, "write_json", broken_write)
    changed = store.get_instance("I1")
    changed.status = RouteStatus.CANCELLED

    with pytest.raises(PersistenceError):
        store.save_instance(changed)

    assert store.get_instance("I1").status is RouteStatus.SCHEDULED


def test_find_instances_filters_by_date_leg_and_student():
    store = RouteStore(storage=None)
    store.save_instance(_instance("am"))
    store.save_instance(_instance("pm", leg=RouteLeg.AFTERNOON))
    store.save_instance(_instance("later", on=date(2026, 3, 3)))

    found = store.find_instances(on=date(2026, 3, 2), legs=[RouteLeg.MORNING, RouteLeg.AFTERNOON], student_id="stu-1")
    assert [instance.id for instance in found] == ["am", "pm"]

    assert store.find_instances(on=date(2026, 3, 2), legs=[RouteLeg.MORNING], student_id="stu-2") == []
    assert store.find_instance_by_stop("pm-s1").id == "pm"


def test_pending_absences_are_ordered_by_date():
    store = RouteStore(storage=None)
    for event_id, day in (("b", 5), ("a", 3), ("old", 1)):
        store.save_absence(
            AbsenceEvent.from_type(
                student_id="stu-1", on=date(2026, 3, day), absence_type=AbsenceType.MORNING, event_id=event_id
            )
        )

    pending = store.pending_absences(date(2026, 3, 2))

    assert [absence.id for absence in pending] == ["a", "b"]


def test_instance_locks_are_per_instance():
    locks = InstanceLocks()
    with locks.hold("I1"):
        # a different instance must not block
        with locks.hold("I2"):
            assert "I2" in locks
        assert "I1" in locks
        assert "I2" not in locks


def test_instance_locks_are_released_after_use():
    locks = InstanceLocks()
    for index in range(50):
        with locks.hold(f"R{index}"):
            pass

    assert len(locks) == 0


def test_instance_lock_survives_while_another_thread_waits():
    locks = InstanceLocks()
    entered = threading.Event()
    order = []

    def second():
        with locks.hold("R1"):
            order.append("second")

    with locks.hold("R1"):
        worker = threading.Thread(target=lambda: (entered.set(), second()))
        worker.start()
        entered.wait()
        time.sleep(0.05)
        order.append("first")
    worker.join()

    assert order == ["first", "second"]
    assert len(locks) == 0
