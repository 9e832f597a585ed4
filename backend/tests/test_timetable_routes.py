import pytest

SLOTS = "/api/time-slots"
ENTRIES = "/api/timetable/entries"


@pytest.fixture()
def slot_ids(client):
    def create(name, start, end, day="Monday"):
        payload = {"day_of_week": day, "start_time": start, "end_time": end, "name": name}
        return client.post(SLOTS, json=payload).json()["slot"]["id"]

    return {
        "first": create("Period 1", "09:00", "09:50"),
        "shifted": create("Shifted", "09:30", "10:20"),
        "second": create("Period 2", "10:30", "11:20"),
    }


def entry_payload(refs, slot_id, *, faculty="faculty_1", room="room_1", section="A", **overrides):
    payload = {
        "subject_id": refs["subject_1"],
        "faculty_id": refs[faculty],
        "classroom_id": refs[room],
        "section": section,
        "semester": 3,
        "academic_year": "2025-2026",
        "slot_id": slot_id,
    }
    payload.update(overrides)
    return payload


def test_create_entry(client, refs, slot_ids):
    response = client.post(ENTRIES, json=entry_payload(refs, slot_ids["first"], section=" b "))
    assert response.status_code == 201
    body = response.json()
    assert body["entry"]["section"] == "B"
    assert body["entry"]["is_active"] is True
    assert body["warnings"] == []


def test_create_entry_validates_academic_year(client, refs, slot_ids):
    response = client.post(ENTRIES, json=entry_payload(refs, slot_ids["first"], academic_year="2025"))
    assert response.status_code == 422


def test_create_entry_requires_known_references(client, refs, slot_ids):
    response = client.post(ENTRIES, json=entry_payload(refs, slot_ids["first"], subject_id="nope"))
    assert response.status_code == 404
    assert response.json()["details"]["resource_type"] == "Subject"

    response = client.post(ENTRIES, json=entry_payload(refs, "missing-slot"))
    assert response.status_code == 404
    assert response.json()["details"]["resource_type"] == "TimeSlot"


def test_create_entry_rejects_inactive_slot(client, refs, slot_ids):
    client.post(f"{SLOTS}/{slot_ids['first']}/transitions", json={"transition": "deactivate"})
    response = client.post(ENTRIES, json=entry_payload(refs, slot_ids["first"]))
    assert response.status_code == 422
    assert response.json()["details"]["slot_id"] == slot_ids["first"]


def test_faculty_double_booking_across_overlapping_slots(client, refs, slot_ids):
    client.post(ENTRIES, json=entry_payload(refs, slot_ids["first"]))
    response = client.post(
        ENTRIES,
        json=entry_payload(refs, slot_ids["shifted"], room="room_2", section="B"),
    )
    assert response.status_code == 409
    body = response.json()
    assert body["details"]["kind"] == "faculty_double_booked"
    assert body["message"].startswith("Faculty conflict")
    assert "CS101" in body["message"]


def test_classroom_double_booking(client, refs, slot_ids):
    client.post(ENTRIES, json=entry_payload(refs, slot_ids["first"]))
    response = client.post(
        ENTRIES,
        json=entry_payload(refs, slot_ids["first"], faculty="faculty_2", section="B"),
    )
    assert response.status_code == 409
    assert response.json()["details"]["kind"] == "classroom_double_booked"


def test_update_entry_to_free_slot(client, refs, slot_ids):
    entry = client.post(ENTRIES, json=entry_payload(refs, slot_ids["first"])).json()["entry"]
    response = client.put(f"{ENTRIES}/{entry['id']}", json={"slot_id": slot_ids["shifted"]})
    assert response.status_code == 200
    assert response.json()["entry"]["slot_id"] == slot_ids["shifted"]


def test_update_entry_into_conflict(client, refs, slot_ids):
    client.post(ENTRIES, json=entry_payload(refs, slot_ids["first"]))
    other = client.post(
        ENTRIES,
        json=entry_payload(refs, slot_ids["second"], faculty="faculty_2", room="room_2", section="B"),
    ).json()["entry"]

    response = client.put(f"{ENTRIES}/{other['id']}", json={"slot_id": slot_ids["shifted"]})
    assert response.status_code == 200

    response = client.put(f"{ENTRIES}/{other['id']}", json={"classroom_id": refs["room_1"]})
    assert response.status_code == 409
    assert response.json()["details"]["kind"] == "classroom_double_booked"


def test_deactivate_and_reactivate_entry(client, refs, slot_ids):
    entry = client.post(ENTRIES, json=entry_payload(refs, slot_ids["first"])).json()["entry"]
    response = client.post(f"{ENTRIES}/{entry['id']}/deactivate")
    assert response.json()["entry"]["is_active"] is False

    # The freed time can now be taken by another class.
    client.post(ENTRIES, json=entry_payload(refs, slot_ids["shifted"], room="room_2", section="B"))

    response = client.post(f"{ENTRIES}/{entry['id']}/activate")
    assert response.status_code == 409


def test_entry_on_deactivated_slot_is_flagged(client, refs, slot_ids):
    entry = client.post(ENTRIES, json=entry_payload(refs, slot_ids["first"])).json()["entry"]
    client.post(f"{SLOTS}/{slot_ids['first']}/transitions", json={"transition": "deactivate"})

    listed = client.get(ENTRIES, params={"slot_id": slot_ids["first"]}).json()
    assert listed[0]["entry_id"] == entry["id"]
    assert listed[0]["is_active"] is True
    assert listed[0]["slot_is_active"] is False

    response = client.post(f"{ENTRIES}/{entry['id']}/deactivate")
    assert response.json()["warnings"]


def test_check_conflicts_endpoint(client, refs, slot_ids):
    client.post(ENTRIES, json=entry_payload(refs, slot_ids["first"]))
    probe = entry_payload(refs, slot_ids["shifted"], room="room_2", section="B")
    probe.pop("subject_id")

    body = client.post("/api/timetable/check-conflicts", json=probe).json()
    assert body["has_conflict"] is True
    assert body["kind"] == "faculty_double_booked"
    assert body["conflicting_entry"]["start_time"] == "09:00"

    probe["slot_id"] = slot_ids["second"]
    body = client.post("/api/timetable/check-conflicts", json=probe).json()
    assert body["has_conflict"] is False
    assert [item["slot_id"] for item in body["faculty_day_schedule"]] == [slot_ids["first"]]


def test_term_conflict_report(client, refs, slot_ids, db_session, make_entry):
    from app.models.time_slot import TimeSlot

    make_entry(db_session.get(TimeSlot, slot_ids["first"]))
    make_entry(db_session.get(TimeSlot, slot_ids["shifted"]), room="room_2", section="B")

    response = client.get("/api/timetable/conflicts", params={"semester": 3, "academic_year": "2025-2026"})
    assert response.status_code == 200
    conflicts = response.json()["conflicts"]
    assert len(conflicts) == 1
    assert conflicts[0]["kind"] == "faculty_double_booked"


def test_term_conflict_report_validates_year(client):
    response = client.get("/api/timetable/conflicts", params={"semester": 3, "academic_year": "2025"})
    assert response.status_code == 422


def test_unknown_entry_is_404(client):
    assert client.get(f"{ENTRIES}/missing").status_code == 404
    assert client.post(f"{ENTRIES}/missing/activate").status_code == 404
