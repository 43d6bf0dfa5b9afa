"""
Integration test script to exercise the full booking flow locally.

Usage:

# start dependencies (postgres + redis), apply migrations
alembic upgrade head

# start app in background (or in another terminal)
uvicorn app.main:app --reload

# run this script with python
python tests/integration/booking_flow.py

This script will:
- create a bus through the admin API
- create a pending booking (seats held in the ledger)
- check a second session cannot take the same seat
- run two concurrent payment signals for the booking (both succeed, seats booked once)
- cancel the booking and verify the seats are free again

Note: run against a local instance of the app at http://localhost:8000
"""

import asyncio
import os
from datetime import date, timedelta
from uuid import uuid4

import httpx

APP_URL = os.environ.get('APP_URL', 'http://localhost:8000')

ADMIN = {'X-User-Id': 'integration-admin', 'X-User-Role': 'admin'}
USER = {'X-User-Id': f'integration-{uuid4().hex[:6]}'}
OTHER = {'X-User-Id': f'integration-{uuid4().hex[:6]}'}


async def create_bus(client):
    resp = await client.post('/admin/buses', headers=ADMIN, json={
        'bus_number': f'IT-{uuid4().hex[:6].upper()}',
        'name': 'Integration Express',
        'source': 'Mumbai',
        'destination': 'Pune',
        'departure_time': '06:00',
        'arrival_time': '09:30',
        'price': 450,
    })
    assert resp.status_code == 201, resp.text
    return resp.json()['id']


def passenger(seat):
    return {'name': f'Passenger {seat}', 'age': 30, 'gender': 'O', 'seat_number': seat}


async def run_flow():
    journey_date = (date.today() + timedelta(days=7)).isoformat()

    async with httpx.AsyncClient(base_url=APP_URL, timeout=30.0) as client:
        print('Creating bus...')
        bus_id = await create_bus(client)

        print('Creating booking...')
        r = await client.post('/bookings/', headers=USER, json={
            'bus_id': bus_id, 'journey_date': journey_date, 'passengers': [passenger('A1'), passenger('A2')],
        })
        assert r.status_code == 201, r.text
        booking = r.json()
        print('Booking created id=', booking['id'], 'hold expires', booking['hold_expires_at'])

        print('Trying the same seat from another session...')
        r = await client.post('/bookings/', headers=OTHER, json={
            'bus_id': bus_id, 'journey_date': journey_date, 'passengers': [passenger('A2')],
        })
        assert r.status_code == 409 and r.json()['error'] == 'SeatConflict', r.text
        print('Conflicting hold rejected: OK')

        # the payment signal may be delivered more than once
        print('Paying concurrently (2 requests)...')
        pay_payload = {'holder_token': booking['holder_token'], 'payment_method': 'upi'}

        async def pay_once():
            resp = await client.post(f"/bookings/{booking['id']}/pay", json=pay_payload, headers=USER)
            return resp.status_code, resp.json()

        results = await asyncio.gather(pay_once(), pay_once())
        print('Payment results:', [status for status, _ in results])
        assert all(status == 200 and body['status'] == 'confirmed' for status, body in results), results

        booked = await client.get(f'/seats/{bus_id}/{journey_date}')
        assert booked.json()['seat_ids'] == ['A1', 'A2'], booked.text
        print('Seats booked once: OK')

        print('Cancelling...')
        c = await client.post(f"/bookings/{booking['id']}/cancel", headers=USER)
        assert c.status_code == 200, c.text
        assert c.json()['payment_status'] == 'refunded'

        booked = await client.get(f'/seats/{bus_id}/{journey_date}')
        assert booked.json()['seat_ids'] == [], booked.text
        print('Seats free after cancellation: OK')

        await client.delete(f'/admin/buses/{bus_id}', headers=ADMIN)

    print('\nIntegration test completed successfully')

if __name__ == '__main__':
    asyncio.run(run_flow())
