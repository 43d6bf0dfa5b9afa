"""
HTTP API: seat ledger endpoints, the booking flow and admin views.
"""
import pytest

USER = {"X-User-Id": "user-1"}
OTHER_USER = {"X-User-Id": "user-2"}
ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "admin"}


def passengers(*seats):
    return [{"name": f"Passenger {s}", "age": 30, "gender": "F", "seat_number": s} for s in seats]


async def create_booking(client, journey_date, seats=("A1", "A2"), headers=USER):
    resp = await client.post("/bookings/", headers=headers, json={
        "bus_id": "bus-1",
        "journey_date": journey_date.isoformat(),
        "passengers": passengers(*seats),
    })
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestSeatEndpoints:
    async def test_reserve_conflict_confirm_release(self, client, test_bus, journey_date):
        day = journey_date.isoformat()

        resp = await client.post("/seats/reserve", json={
            "bus_id": "bus-1", "journey_date": day, "seat_ids": ["A1", "A2"], "holder_token": "T1",
            "hold_seconds": 600,
        })
        assert resp.status_code == 200
        assert resp.json()["granted"] == ["A1", "A2"]

        resp = await client.post("/seats/reserve", json={
            "bus_id": "bus-1", "journey_date": day, "seat_ids": ["A1"], "holder_token": "T2",
        })
        assert resp.status_code == 409
        assert resp.json() == {"error": "SeatConflict", "detail": "Seats are no longer available", "seat_ids": ["A1"]}

        resp = await client.post("/seats/confirm", json={
            "bus_id": "bus-1", "journey_date": day, "seat_ids": ["A1", "A2"], "holder_token": "T1",
            "booking_id": "BK-1",
        })
        assert resp.status_code == 200
        assert resp.json()["committed"] is True

        resp = await client.get(f"/seats/bus-1/{day}")
        assert resp.json()["seat_ids"] == ["A1", "A2"]

        # the holder's own release cannot undo a booking
        resp = await client.post("/seats/release", json={
            "bus_id": "bus-1", "journey_date": day, "seat_ids": ["A1", "A2"], "holder_token": "T1",
        })
        assert resp.json() == {"released": True}
        assert (await client.get(f"/seats/bus-1/{day}")).json()["seat_ids"] == ["A1", "A2"]

        resp = await client.post("/admin/seats/release", headers=ADMIN, json={
            "bus_id": "bus-1", "journey_date": day, "seat_ids": ["A1", "A2"], "note": "bus swapped",
        })
        assert resp.json() == {"released": True}
        assert (await client.get(f"/seats/bus-1/{day}")).json()["seat_ids"] == []

    async def test_release_frees_only_the_callers_hold(self, client, test_bus, journey_date):
        day = journey_date.isoformat()
        await client.post("/seats/reserve", json={
            "bus_id": "bus-1", "journey_date": day, "seat_ids": ["B1"], "holder_token": "T1",
        })

        await client.post("/seats/release", json={
            "bus_id": "bus-1", "journey_date": day, "seat_ids": ["B1"], "holder_token": "T2",
        })
        assert (await client.get(f"/seats/bus-1/{day}")).json()["seat_ids"] == ["B1"]

        await client.post("/seats/release", json={
            "bus_id": "bus-1", "journey_date": day, "seat_ids": ["B1"], "holder_token": "T1",
        })
        assert (await client.get(f"/seats/bus-1/{day}")).json()["seat_ids"] == []

    async def test_paid_seat_cannot_be_released_and_resold(self, client, test_bus, journey_date):
        day = journey_date.isoformat()
        booking = await create_booking(client, journey_date, seats=("A1",))
        await client.post(f"/bookings/{booking['id']}/pay", headers=USER, json={"holder_token": booking["holder_token"]})

        for body in (
            {"seat_ids": ["A1"], "reason": "admin"},
            {"seat_ids": ["A1"], "reason": "booking_cancelled"},
            {"seat_ids": ["A1"], "reason": "hold_released"},
        ):
            resp = await client.post("/seats/release", json={"bus_id": "bus-1", "journey_date": day, **body})
            assert resp.status_code == 422
        resp = await client.post("/admin/seats/release", headers=USER, json={
            "bus_id": "bus-1", "journey_date": day, "seat_ids": ["A1"],
        })
        assert resp.status_code == 403

        resp = await client.post("/bookings/", headers=OTHER_USER, json={
            "bus_id": "bus-1", "journey_date": day, "passengers": passengers("A1"),
        })
        assert resp.status_code == 409
        assert (await client.get(f"/bookings/{booking['id']}", headers=USER)).json()["status"] == "confirmed"

    async def test_unknown_bus_is_invalid_for_confirm_and_query(self, client, test_bus, journey_date):
        day = journey_date.isoformat()

        resp = await client.post("/seats/confirm", json={
            "bus_id": "nope", "journey_date": day, "seat_ids": ["A1"], "holder_token": "T1", "booking_id": "BK-1",
        })
        assert resp.status_code == 422
        assert resp.json()["error"] == "InvalidRequest"

        assert (await client.get(f"/seats/nope/{day}")).status_code == 422
        assert (await client.get(f"/seats/nope/{day}/map")).status_code == 422

    async def test_expiry_and_conflict_are_distinguishable(self, client, test_bus, journey_date, clock):
        day = journey_date.isoformat()
        await client.post("/seats/reserve", json={
            "bus_id": "bus-1", "journey_date": day, "seat_ids": ["C1"], "holder_token": "T1", "hold_seconds": 60,
        })
        clock.advance(120)

        resp = await client.post("/seats/confirm", json={
            "bus_id": "bus-1", "journey_date": day, "seat_ids": ["C1"], "holder_token": "T1", "booking_id": "BK-1",
        })
        assert resp.status_code == 409
        assert resp.json()["error"] == "HoldExpired"

    @pytest.mark.parametrize("bus_id, seat_ids", [("nope", ["A1"]), ("bus-1", ["Z1"]), ("bus-1", [])])
    async def test_invalid_requests(self, client, test_bus, journey_date, bus_id, seat_ids):
        resp = await client.post("/seats/reserve", json={
            "bus_id": bus_id, "journey_date": journey_date.isoformat(), "seat_ids": seat_ids, "holder_token": "T1",
        })
        assert resp.status_code == 422
        assert resp.json()["error"] == "InvalidRequest"

    async def test_seat_map_shows_states_without_tokens(self, client, test_bus, journey_date):
        day = journey_date.isoformat()
        await client.post("/seats/reserve", json={
            "bus_id": "bus-1", "journey_date": day, "seat_ids": ["D1"], "holder_token": "secret",
        })

        resp = await client.get(f"/seats/bus-1/{day}/map")

        body = resp.json()
        assert body["version"] == 1
        assert body["seats"]["D1"]["state"] == "held"
        assert "secret" not in resp.text


class TestBookingFlow:
    async def test_create_pay_cancel(self, client, test_bus, journey_date):
        day = journey_date.isoformat()
        booking = await create_booking(client, journey_date)

        assert booking["status"] == "pending"
        assert booking["total_amount"] == 900.0
        assert booking["selected_seats"] == ["A1", "A2"]
        assert (await client.get(f"/seats/bus-1/{day}")).json()["seat_ids"] == ["A1", "A2"]

        resp = await client.post(f"/bookings/{booking['id']}/pay", headers=USER,
                                 json={"holder_token": booking["holder_token"], "payment_method": "upi"})
        assert resp.status_code == 200
        assert resp.json()["status"] == "confirmed"
        assert resp.json()["payment_status"] == "completed"

        # payment signal delivered twice
        resp = await client.post(f"/bookings/{booking['id']}/pay", headers=USER,
                                 json={"holder_token": booking["holder_token"]})
        assert resp.status_code == 200
        assert resp.json()["status"] == "confirmed"

        resp = await client.post(f"/bookings/{booking['id']}/cancel", headers=USER)
        assert resp.status_code == 200
        assert resp.json()["status"] == "cancelled"
        assert resp.json()["payment_status"] == "refunded"
        assert (await client.get(f"/seats/bus-1/{day}")).json()["seat_ids"] == []

        resp = await client.post(f"/bookings/{booking['id']}/cancel", headers=USER)
        assert resp.status_code == 409

    async def test_second_booking_for_same_seat_conflicts(self, client, test_bus, journey_date):
        await create_booking(client, journey_date, seats=("B1",))

        resp = await client.post("/bookings/", headers=OTHER_USER, json={
            "bus_id": "bus-1", "journey_date": journey_date.isoformat(), "passengers": passengers("B1", "B2"),
        })

        assert resp.status_code == 409
        assert resp.json()["seat_ids"] == ["B1"]

    async def test_cancel_pending_booking_frees_hold(self, client, test_bus, journey_date):
        booking = await create_booking(client, journey_date, seats=("E1",))

        resp = await client.post(f"/bookings/{booking['id']}/cancel", headers=USER)

        assert resp.json()["status"] == "cancelled"
        assert (await client.get(f"/seats/bus-1/{journey_date.isoformat()}")).json()["seat_ids"] == []

    async def test_payment_after_hold_expiry_fails(self, client, test_bus, journey_date, clock):
        booking = await create_booking(client, journey_date, seats=("F1",))
        clock.advance(601)

        resp = await client.post(f"/bookings/{booking['id']}/pay", headers=USER,
                                 json={"holder_token": booking["holder_token"]})

        assert resp.status_code == 409
        assert resp.json()["error"] == "HoldExpired"
        got = await client.get(f"/bookings/{booking['id']}", headers=USER)
        assert got.json()["status"] == "pending"

    async def test_other_users_cannot_touch_a_booking(self, client, test_bus, journey_date):
        booking = await create_booking(client, journey_date, seats=("G1",))

        assert (await client.post(f"/bookings/{booking['id']}/cancel", headers=OTHER_USER)).status_code == 403
        assert (await client.get(f"/bookings/{booking['id']}", headers=OTHER_USER)).status_code == 404
        resp = await client.post(f"/bookings/{booking['id']}/pay", headers=USER, json={"holder_token": "guess"})
        assert resp.status_code == 403

    async def test_my_bookings(self, client, test_bus, journey_date):
        await create_booking(client, journey_date, seats=("H1",))
        await create_booking(client, journey_date, seats=("H2",), headers=OTHER_USER)

        resp = await client.get("/bookings/", headers=USER)

        assert [b["selected_seats"] for b in resp.json()] == [["H1"]]

    async def test_identity_header_is_required(self, client, test_bus):
        assert (await client.get("/bookings/")).status_code == 401

    async def test_unknown_bus(self, client, test_bus, journey_date):
        resp = await client.post("/bookings/", headers=USER, json={
            "bus_id": "ghost", "journey_date": journey_date.isoformat(), "passengers": passengers("A1"),
        })
        assert resp.status_code == 422


class TestBusesAndAdmin:
    async def test_search_is_case_insensitive(self, client, test_bus):
        resp = await client.get("/buses/", params={"source": "mumbai", "destination": "PUNE"})

        assert [b["id"] for b in resp.json()] == ["bus-1"]
        assert resp.json()[0]["total_seats"] == 40
        assert (await client.get("/buses/", params={"source": "Pune", "destination": "Mumbai"})).json() == []

    async def test_admin_bus_crud(self, client, db_engine):
        resp = await client.post("/admin/buses", headers=ADMIN, json={
            "bus_number": "KA-01-F-9", "name": "Airavat Club", "bus_type": "Sleeper", "source": "Bengaluru",
            "destination": "Mysuru", "departure_time": "22:00", "arrival_time": "01:00", "price": 700,
            "rows": 5, "seats_per_row": 3,
        })
        assert resp.status_code == 201
        bus = resp.json()
        assert bus["operator"] == "Airavat"
        assert bus["total_seats"] == 15

        resp = await client.put(f"/admin/buses/{bus['id']}", headers=ADMIN, json={"price": 650})
        assert resp.json()["price"] == 650.0

        assert (await client.delete(f"/admin/buses/{bus['id']}", headers=ADMIN)).json() == {"deleted": True}
        assert (await client.get(f"/buses/{bus['id']}")).status_code == 404

    async def test_admin_routes_require_admin_role(self, client, db_engine):
        assert (await client.get("/admin/stats", headers=USER)).status_code == 403

    async def test_stats(self, client, test_bus, journey_date):
        paid = await create_booking(client, journey_date, seats=("A1", "A2"))
        await client.post(f"/bookings/{paid['id']}/pay", headers=USER, json={"holder_token": paid["holder_token"]})
        await create_booking(client, journey_date, seats=("B1",))

        resp = await client.get("/admin/stats", headers=ADMIN)

        assert resp.json() == {
            "total_bookings": 2,
            "confirmed_bookings": 1,
            "total_revenue": 900.0,
            "total_buses": 1,
        }
        confirmed = await client.get("/admin/bookings", headers=ADMIN, params={"status": "confirmed"})
        assert [b["id"] for b in confirmed.json()] == [paid["id"]]

    async def test_manual_sweep(self, client, test_bus, journey_date, clock):
        await create_booking(client, journey_date, seats=("J1",))
        clock.advance(601)

        resp = await client.post("/admin/sweep", headers=ADMIN)

        assert resp.json() == {"released": 1}

    async def test_audit_trail(self, client, test_bus, journey_date):
        booking = await create_booking(client, journey_date, seats=("K1",))
        await client.post(f"/bookings/{booking['id']}/cancel", headers=USER)

        resp = await client.get("/admin/audit", headers=ADMIN, params={"object_type": "booking"})

        entries = resp.json()
        assert [e["action"] for e in entries] == ["cancel_booking"]
        assert entries[0]["actor_id"] == "user-1"
        assert entries[0]["detail"] == {"prior_status": "pending", "seats": ["K1"]}


class TestOperational:
    async def test_health_and_metrics(self, client):
        assert (await client.get("/health")).json() == {"status": "ok"}
        resp = await client.get("/metrics")
        assert "seat_ledger_operations_total" in resp.text

    async def test_trace_id_is_echoed(self, client):
        resp = await client.get("/health", headers={"X-Trace-Id": "trace-123"})
        assert resp.headers["x-trace-id"] == "trace-123"
