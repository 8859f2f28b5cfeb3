"""Tests for the trip REST API."""

TRIP = {
    "title": "Commute home",
    "start": {"lat": 40.7128, "lng": -74.0060},
    "destination": {"lat": 40.7306, "lng": -73.9352, "placeName": "Home"},
    "radiusMeters": 500,
}


def _create(client, **overrides):
    response = client.post("/trips", json={**TRIP, **overrides})
    assert response.status_code == 201, response.text
    return response.json()


class TestTripCrud:

    def test_create_returns_generated_fields(self, client):
        trip = _create(client)

        assert trip["id"]
        assert trip["createdAt"]
        assert trip["startedAt"] is None
        assert trip["endedAt"] is None
        assert trip["locationPoints"] == []
        assert trip["destination"] == {"lat": 40.7306, "lng": -73.9352, "placeName": "Home"}
        assert trip["radiusMeters"] == 500
        assert trip["etaOffsetMinutes"] == 0

    def test_get_round_trip(self, client):
        trip = _create(client)

        response = client.get(f"/trips/{trip['id']}")

        assert response.status_code == 200
        assert response.json()["title"] == "Commute home"
        assert response.json()["start"] == {"lat": 40.7128, "lng": -74.0060}

    def test_list_orders(self, client):
        first = _create(client, title="First")
        second = _create(client, title="Second")

        newest = [t["id"] for t in client.get("/trips").json()]
        oldest = [t["id"] for t in client.get("/trips", params={"order": "oldest"}).json()]

        assert newest == [second["id"], first["id"]]
        assert oldest == [first["id"], second["id"]]

    def test_update_ignores_lifecycle_fields(self, client):
        trip = _create(client)

        response = client.put(f"/trips/{trip['id']}", json={
            "title": "Renamed",
            "radiusMeters": 800,
            "endedAt": "2024-01-01T00:00:00Z",
            "startedAt": "2024-01-01T00:00:00Z",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["title"] == "Renamed"
        assert body["radiusMeters"] == 800
        assert body["endedAt"] is None
        assert body["startedAt"] is None
        assert body["destination"]["placeName"] == "Home"

    def test_update_rejects_explicit_null(self, client):
        trip = _create(client)

        for field in ("title", "radiusMeters", "destination", "etaOffsetMinutes"):
            response = client.put(f"/trips/{trip['id']}", json={field: None})
            assert response.status_code == 422, field

        body = client.get(f"/trips/{trip['id']}").json()
        assert body["title"] == "Commute home"
        assert body["radiusMeters"] == 500

    def test_update_can_clear_start(self, client):
        trip = _create(client)

        response = client.put(f"/trips/{trip['id']}", json={"start": None})

        assert response.status_code == 200
        assert response.json()["start"] is None

    def test_delete(self, client):
        trip = _create(client)

        response = client.delete(f"/trips/{trip['id']}")

        assert response.status_code == 200
        assert response.json() == {"message": "Trip deleted successfully"}
        assert client.get(f"/trips/{trip['id']}").status_code == 404

    def test_unknown_trip_is_404(self, client):
        assert client.get("/trips/nope").status_code == 404
        assert client.put("/trips/nope", json={"title": "x"}).status_code == 404
        assert client.delete("/trips/nope").status_code == 404
        assert client.post("/trips/nope/point", json={"lat": 1, "lng": 1}).status_code == 404
        assert client.post("/trips/nope/end").status_code == 404


class TestTripValidation:

    def test_radius_below_minimum(self, client):
        response = client.post("/trips", json={**TRIP, "radiusMeters": 10})
        assert response.status_code == 422

    def test_missing_destination(self, client):
        body = {k: v for k, v in TRIP.items() if k != "destination"}
        assert client.post("/trips", json=body).status_code == 422

    def test_latitude_out_of_range(self, client):
        response = client.post("/trips", json={**TRIP, "destination": {"lat": 91, "lng": 0}})
        assert response.status_code == 422

    def test_blank_title(self, client):
        assert client.post("/trips", json={**TRIP, "title": "   "}).status_code == 422


class TestTripLifecycle:

    def test_first_point_starts_trip(self, client):
        trip = _create(client)

        response = client.post(f"/trips/{trip['id']}/point", json={"lat": 40.72, "lng": -73.95})

        assert response.status_code == 200
        body = response.json()
        assert body["startedAt"] is not None
        assert len(body["locationPoints"]) == 1
        assert body["locationPoints"][0]["lat"] == 40.72

    def test_point_accepts_long_names(self, client):
        trip = _create(client)

        client.post(f"/trips/{trip['id']}/point", json={"lat": 40.72, "lng": -73.95})
        response = client.post(f"/trips/{trip['id']}/point", json={
            "latitude": 40.73,
            "longitude": -73.94,
            "timestamp": "2026-01-01T08:00:30Z",
        })

        points = response.json()["locationPoints"]
        assert [p["lat"] for p in points] == [40.72, 40.73]
        assert points[1]["lng"] == -73.94

    def test_point_out_of_range(self, client):
        trip = _create(client)
        response = client.post(f"/trips/{trip['id']}/point", json={"lat": 100, "lng": 0})
        assert response.status_code == 422

    def test_end_is_idempotent(self, client):
        trip = _create(client)

        first = client.post(f"/trips/{trip['id']}/end").json()
        second = client.post(f"/trips/{trip['id']}/end").json()

        assert first["endedAt"] is not None
        assert second["endedAt"] == first["endedAt"]

    def test_delete_removes_points(self, client):
        trip = _create(client)
        client.post(f"/trips/{trip['id']}/point", json={"lat": 40.72, "lng": -73.95})

        assert client.delete(f"/trips/{trip['id']}").status_code == 200
        assert client.get("/trips").json() == []


class TestServiceEndpoints:

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_api_info(self, client):
        body = client.get("/api").json()
        assert body["status"] == "online"
        assert "/trips/{trip_id}/monitor" in body["features"]["websockets"]

    def test_logs_socket_answers_ping(self, client):
        with client.websocket_connect("/logs") as ws:
            ws.send_text("ping")
            assert ws.receive_text() == "pong"
