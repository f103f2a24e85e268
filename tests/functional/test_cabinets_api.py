"""Functional tests for the cabinet, device and port endpoints."""

from __future__ import annotations


def _create_cabinet(client, **body):
    resp = client.post("/api/cabinets", json={"name": "Core", **body})
    assert resp.status_code == 201, resp.text
    return resp.json()["cabinet"]


def _create_device(client, cabinet_id, **body):
    resp = client.post(
        f"/api/cabinets/{cabinet_id}/devices", json={"type": "Switch", **body}
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["device"]


def test_health_and_metrics(api_client):
    assert api_client.get("/health").json() == {"status": "ok"}
    metrics = api_client.get("/metrics")
    assert metrics.status_code == 200
    assert "rakit_allocations_total" in metrics.text
    assert "X-Process-Time" in metrics.headers


def test_cabinet_crud(api_client):
    cab = _create_cabinet(api_client, sizeU=24, symbol="A1")
    assert cab["sizeU"] == 24
    assert api_client.get("/api/cabinets").json()["cabinets"][0]["symbol"] == "A1"

    resp = api_client.patch(f"/api/cabinets/{cab['id']}", json={"location": "R2"})
    assert resp.json()["cabinet"]["location"] == "R2"

    assert api_client.delete(f"/api/cabinets/{cab['id']}").json() == {"ok": True}
    missing = api_client.delete(f"/api/cabinets/{cab['id']}")
    assert missing.status_code == 404
    assert missing.json()["error"] == "not_found"


def test_validation_error_body(api_client):
    resp = api_client.post("/api/cabinets", json={"name": "Tiny", "sizeU": 2})
    assert resp.status_code == 400
    body = resp.json()
    assert body["error"] == "validation_error"
    assert body["message"] == "Invalid sizeU: must be between 4 and 60"
    assert body["details"]["field"] == "sizeU"
    assert body["path"] == "/api/cabinets"
    assert "timestamp" in body

    cab = _create_cabinet(api_client)
    empty = api_client.patch(f"/api/cabinets/{cab['id']}", json={})
    assert empty.status_code == 400
    assert empty.json()["message"] == "Nothing to update"


def test_request_model_errors_are_422(api_client):
    resp = api_client.post("/api/cabinets", json={"name": "X", "sizeU": "tall"})
    assert resp.status_code == 422
    body = resp.json()
    assert body["error"] == "Validation failed"
    assert body["validation_errors"][0]["field"].endswith("sizeU")


def test_stacking_corner_case(api_client):
    cab = _create_cabinet(api_client)
    a = _create_device(api_client, cab["id"], heightU=2)
    b = _create_device(api_client, cab["id"], heightU=1)
    assert (a["position"], b["position"]) == (1, 3)

    url = f"/api/cabinets/{cab['id']}/devices/{b['id']}"
    conflict = api_client.patch(url, json={"position": 2})
    assert conflict.status_code == 409
    assert conflict.json()["error"] == "position_conflict"

    stacked = api_client.patch(url, json={"position": 1})
    assert stacked.status_code == 200
    assert stacked.json()["device"]["position"] == 1

    view = api_client.get(f"/api/cabinets/{cab['id']}/devices").json()
    assert [d["position"] for d in view["devices"]] == [1, 1]
    assert view["usage"]["deviceCount"] == 2


def test_full_cabinet_is_a_conflict(api_client):
    cab = _create_cabinet(api_client, sizeU=4)
    _create_device(api_client, cab["id"], heightU=4)
    resp = api_client.post(f"/api/cabinets/{cab['id']}/devices", json={"type": "x"})
    assert resp.status_code == 409
    assert resp.json()["message"] == "No available space in cabinet"


def test_out_of_range_move_and_foreign_device(api_client):
    first = _create_cabinet(api_client, sizeU=10)
    second = _create_cabinet(api_client, name="Other")
    dev = _create_device(api_client, first["id"], heightU=2)

    resp = api_client.patch(
        f"/api/cabinets/{first['id']}/devices/{dev['id']}", json={"position": 10}
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "Position out of range"

    foreign = api_client.delete(f"/api/cabinets/{second['id']}/devices/{dev['id']}")
    assert foreign.status_code == 404


def test_cabinet_shrink_is_rejected(api_client):
    cab = _create_cabinet(api_client, sizeU=24)
    _create_device(api_client, cab["id"], heightU=12)
    resp = api_client.patch(f"/api/cabinets/{cab['id']}", json={"sizeU": 10})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Cabinet too small for mounted devices"


def test_port_hub_flow(api_client):
    cab = _create_cabinet(api_client, name="Edge")
    dev = _create_device(api_client, cab["id"], portAware=True, numberOfPorts=8)
    base = f"/api/cabinets/{cab['id']}/devices/{dev['id']}"

    ports = api_client.get(f"{base}/ports").json()["ports"]
    assert [p["portNumber"] for p in ports] == list(range(1, 9))

    patched = api_client.patch(
        f"{base}/ports/3", json={"vlan": "30", "ipAddress": "10.0.0.3"}
    )
    assert patched.status_code == 200
    assert patched.json()["port"]["vlan"] == "30"
    assert api_client.patch(f"{base}/ports/9", json={"vlan": "1"}).status_code == 404

    devices = api_client.get("/api/porthub/devices").json()["devices"]
    assert devices[0]["cabinetName"] == "Edge"

    api_client.patch(base, json={"numberOfPorts": 4})
    ports = api_client.get(f"{base}/ports").json()["ports"]
    assert len(ports) == 4
    assert ports[2]["ipAddress"] == "10.0.0.3"

    missing = api_client.patch(base, json={"portAware": True, "numberOfPorts": 0})
    assert missing.status_code == 400

    api_client.patch(base, json={"portAware": False})
    assert api_client.get(f"{base}/ports").json()["ports"] == []
    assert api_client.get("/api/porthub/devices").json()["devices"] == []


def test_request_id_header(api_client):
    generated = api_client.get("/health").headers["X-Request-ID"]
    assert len(generated) == 32
    echoed = api_client.get("/health", headers={"X-Request-ID": "req-42"})
    assert echoed.headers["X-Request-ID"] == "req-42"


def test_openapi_documents_error_bodies(api_client):
    schema = api_client.get("/openapi.json").json()
    assert "ErrorResponse" in schema["components"]["schemas"]
    responses = schema["paths"]["/api/cabinets/{cabinet_id}"]["delete"]["responses"]
    assert responses["404"]["content"]["application/json"]["schema"] == {
        "$ref": "#/components/schemas/ErrorResponse"
    }
    credential_check = schema["paths"]["/api/ipdash/profiles/test"]["post"]
    assert "502" in credential_check["responses"]
