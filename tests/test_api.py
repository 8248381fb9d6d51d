from datetime import date, timedelta


API = "/api/v1"


def _sync(client, session):
    res = client.post(f"{API}/session/sync", headers=session)
    assert res.status_code == 200
    return res.json()["events"]


def _employee(client, session, name="Ana", contract_class="permanent"):
    res = client.post(f"{API}/employees", json={"name": name, "contract_class": contract_class}, headers=session)
    assert res.status_code == 202
    return res.json()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_requests_without_session_are_rejected(client):
    assert client.get(f"{API}/demands").status_code == 401
    assert client.get(f"{API}/demands", headers={"X-Session-Id": "nope"}).status_code == 401


def test_session_bootstraps_protected_statuses(client, session):
    res = client.get(f"{API}/statuses", headers=session)
    assert res.status_code == 200
    data = res.json()
    assert [s["label"] for s in data["items"]] == ["Open", "Awaiting Response", "Done"]
    assert all(s["protected"] for s in data["items"])


def test_demand_lifecycle(client, session):
    owner = _employee(client, session)
    res = client.post(
        f"{API}/demands",
        json={"title": "Renew insurance", "due_date": "2024-07-01", "priority": "high", "owner_id": owner["id"]},
        headers=session,
    )
    assert res.status_code == 202
    demand = res.json()
    assert demand["status"] == "Open"
    assert demand["id"].startswith("temp-")

    _sync(client, session)
    listing = client.get(f"{API}/demands", headers=session).json()
    assert listing["total"] == 1
    item = listing["items"][0]
    assert item["pending"] is False
    assert not item["id"].startswith("temp-")
    assert not item["owner_id"].startswith("temp-")

    # The temp id keeps working after reconciliation
    res = client.patch(f"{API}/demands/{demand['id']}/status", json={"status": "awaiting response"}, headers=session)
    assert res.status_code == 202
    assert res.json()["status"] == "Awaiting Response"
    assert res.json()["id"] == item["id"]

    res = client.patch(f"{API}/demands/{item['id']}", json={"status": "Unknown"}, headers=session)
    assert res.status_code == 400

    res = client.delete(f"{API}/demands/{item['id']}", headers=session)
    assert res.status_code == 202
    _sync(client, session)
    assert client.get(f"{API}/demands/{item['id']}", headers=session).status_code == 404


def test_status_rules(client, session):
    statuses = client.get(f"{API}/statuses", headers=session).json()["items"]
    done = next(s for s in statuses if s["label"] == "Done")

    assert client.delete(f"{API}/statuses/{done['id']}", headers=session).status_code == 409
    assert client.patch(f"{API}/statuses/{done['id']}", json={"label": "Closed"}, headers=session).status_code == 409
    assert client.post(f"{API}/statuses", json={"label": "OPEN"}, headers=session).status_code == 409

    res = client.post(f"{API}/statuses", json={"label": "Blocked", "icon": "Ban"}, headers=session)
    assert res.status_code == 202
    blocked = res.json()
    assert blocked["order"] == 2 and blocked["protected"] is False

    client.post(f"{API}/demands", json={"title": "Fix door", "due_date": "2024-07-01", "status": "Blocked"}, headers=session)
    _sync(client, session)
    res = client.delete(f"{API}/statuses/{blocked['id']}", headers=session)
    assert res.status_code == 202
    _sync(client, session)

    demands = client.get(f"{API}/demands", headers=session).json()["items"]
    assert [d["status"] for d in demands] == ["Open"]
    labels = [s["label"] for s in client.get(f"{API}/statuses", headers=session).json()["items"]]
    assert labels == ["Open", "Awaiting Response", "Done"]


def test_vacations_copy_the_employee_name(client, session):
    ana = _employee(client, session)
    res = client.post(
        f"{API}/vacations",
        json={"employee_id": ana["id"], "start_date": "2024-08-01", "end_date": "2024-08-10"},
        headers=session,
    )
    assert res.status_code == 202
    assert res.json()["employee_name"] == "Ana"

    res = client.post(
        f"{API}/vacations",
        json={"employee_id": ana["id"], "start_date": "2024-08-10", "end_date": "2024-08-01"},
        headers=session,
    )
    assert res.status_code == 422

    res = client.post(
        f"{API}/vacations",
        json={"employee_id": "missing", "start_date": "2024-08-01", "end_date": "2024-08-02"},
        headers=session,
    )
    assert res.status_code == 400


def test_certificate_upload_and_compliance(client, session):
    ana = _employee(client, session)
    today = date.today()
    for days_ago, days in ((40, 4), (10, 5)):
        res = client.post(
            f"{API}/certificates",
            data={
                "employee_id": ana["id"],
                "certificate_date": (today - timedelta(days=days_ago)).isoformat(),
                "days": str(days),
                "diagnosis_code": "J06.9",
            },
            headers=session,
        )
        assert res.status_code == 202

    res = client.post(
        f"{API}/certificates",
        data={
            "employee_id": ana["id"],
            "certificate_date": (today - timedelta(days=5)).isoformat(),
            "days": "2",
            "diagnosis_code": "j06",
        },
        files={"file": ("note.pdf", b"%PDF-1.4 sick note", "application/pdf")},
        headers=session,
    )
    assert res.status_code == 202
    _sync(client, session)

    certs = client.get(f"{API}/certificates", headers=session).json()["items"]
    url = next(c["attachment_url"] for c in certs if c["attachment_url"])
    attachment = client.get(url.replace("http://testserver", ""))
    assert attachment.status_code == 200
    assert attachment.content == b"%PDF-1.4 sick note"

    report = client.get(f"{API}/employees/{ana['id']}/compliance", headers=session).json()
    assert report["accumulated_days"] == 11
    assert report["status"] == "refer-to-internal-committee"
    assert report["limit"] == 10

    summary = client.get(f"{API}/dashboard/summary", headers=session).json()
    assert [f["employee_id"] for f in summary["flagged_employees"]] == [report["employee_id"]]


def test_half_day_and_invalid_days(client, session):
    ana = _employee(client, session)
    base = {"employee_id": ana["id"], "certificate_date": "2024-05-02"}
    res = client.post(f"{API}/certificates", data={**base, "days": "3", "half_day": "true"}, headers=session)
    assert res.status_code == 202
    assert res.json()["days"] == 0.5
    res = client.post(f"{API}/certificates", data={**base, "days": "1.3"}, headers=session)
    assert res.status_code == 400


def test_employee_delete_cascades_to_certificates(client, session):
    ana = _employee(client, session)
    client.post(
        f"{API}/certificates",
        data={"employee_id": ana["id"], "certificate_date": "2024-05-02"},
        headers=session,
    )
    _sync(client, session)
    employee_id = client.get(f"{API}/employees", headers=session).json()["items"][0]["id"]

    assert client.delete(f"{API}/employees/{employee_id}", headers=session).status_code == 202
    assert client.get(f"{API}/certificates", headers=session).json()["total"] == 0
    assert _sync(client, session) == []


def test_backup_round_trip_into_a_new_session(client, session):
    _employee(client, session, "Ana")
    client.post(f"{API}/statuses", json={"label": "Blocked"}, headers=session)
    exported = client.get(f"{API}/backup/export", headers=session).json()
    assert [e["name"] for e in exported["employees"]] == ["Ana"]

    other = {"X-Session-Id": client.post(f"{API}/session").json()["session_id"]}
    res = client.post(f"{API}/backup/import", json=exported, headers=other)
    assert res.status_code == 200
    assert res.json()["counts"]["employees"] == 1
    labels = [s["label"] for s in client.get(f"{API}/statuses", headers=other).json()["items"]]
    assert labels == ["Open", "Awaiting Response", "Blocked", "Done"]


def test_close_session(client, session):
    assert client.delete(f"{API}/session", headers=session).status_code == 200
    assert client.get(f"{API}/demands", headers=session).status_code == 401
    assert client.delete(f"{API}/session", headers=session).status_code == 404
