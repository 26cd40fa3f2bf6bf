"""
Locust Load Test Suite

Needs a seeded catalog (python -m app.db.seed) and, for the contention test,
the id of a flight with few seats left in CONTENTION_FLIGHT_ID.

Run scenarios:
  locust -f locustfile.py --tags contention  # Many users, same seats
  locust -f locustfile.py --tags search      # Cached search throughput
  locust -f locustfile.py --tags edge        # Bad input
  locust -f locustfile.py                    # All tests
"""

import os
import random
import string
from locust import HttpUser, task, between, tag

FLIGHT_IDS = []
AIRPORTS = ["BLR", "DEL", "MAA", "BOM", "HYD"]
CONTENTION_FLIGHT_ID = int(os.environ.get("CONTENTION_FLIGHT_ID", "1"))
SEATS = [f"{row}{col}" for row in range(1, 4) for col in "ABCDEF"]


def random_email():
    return f"load_{random.randint(10000, 99999)}@example.com"


def random_username():
    return "u_" + "".join(random.choices(string.ascii_lowercase, k=8))


def random_passenger(seat=None):
    data = {
        "first_name": random.choice(["Asha", "Ben", "Chen", "Dana"]),
        "last_name": random.choice(["Rao", "Smith", "Li", "Okafor"]),
        "age": random.randint(1, 90),
        "gender": random.choice(["Male", "Female", "Other"]),
    }
    if seat:
        data["seat_number"] = seat
    return data


class AuthenticatedUser(HttpUser):
    abstract = True

    def on_start(self):
        email = random_email()
        self.client.post("/api/v1/auth/register", json={
            "email": email,
            "username": random_username(),
            "password": "loadtest123",
        })
        resp = self.client.post("/api/v1/auth/login", json={
            "email": email,
            "password": "loadtest123",
        })
        if resp.status_code == 200:
            self.headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}
        else:
            self.headers = {}


class ContentionUser(AuthenticatedUser):
    """
    TEST 1: Everyone wants the same 18 seats on one flight.

    Run: locust -f locustfile.py --tags contention -u 100 -r 50 --run-time 30s

    After test, verify no seat is held twice:
      SELECT seat_number, COUNT(*) FROM booking_passengers
      WHERE flight_id = X AND is_active GROUP BY seat_number HAVING COUNT(*) > 1;
    Should return no rows, and flights.available_seats must equal
    seat_capacity minus the active passenger count.
    """
    wait_time = between(0, 0.1)

    @tag("contention")
    @task(5)
    def grab_seats(self):
        if not self.headers:
            return
        seats = random.sample(SEATS, random.randint(1, 2))
        with self.client.post("/api/v1/bookings/",
            json={
                "flight_id": CONTENTION_FLIGHT_ID,
                "passengers": [random_passenger(s) for s in seats],
            },
            headers=self.headers,
            name="/api/v1/bookings/ [contention]",
            catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                self.booking_id = resp.json()["id"]
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: seat taken or sold out
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("contention")
    @task(1)
    def release_seats(self):
        booking_id = getattr(self, "booking_id", None)
        if not booking_id:
            return
        self.booking_id = None
        self.client.put(f"/api/v1/bookings/{booking_id}/cancel",
            headers=self.headers,
            name="/api/v1/bookings/{id}/cancel")


class SearchUser(AuthenticatedUser):
    """
    TEST 2: Search throughput and cache effectiveness.

    Run twice, with and without Redis, and compare P95 latency.
    """
    wait_time = between(0.1, 0.5)

    @tag("search", "read")
    @task(10)
    def search(self):
        if not self.headers:
            return
        origin, destination = random.sample(AIRPORTS, 2)
        resp = self.client.get("/api/v1/flights/search",
            params={"origin": origin, "destination": destination},
            headers=self.headers,
            name="/api/v1/flights/search")
        if resp.status_code == 200:
            for flight in resp.json().get("flights", []):
                if flight["id"] not in FLIGHT_IDS:
                    FLIGHT_IDS.append(flight["id"])

    @tag("search", "read")
    @task(3)
    def booked_seats(self):
        if FLIGHT_IDS and self.headers:
            self.client.get(f"/api/v1/flights/{random.choice(FLIGHT_IDS)}/booked-seats",
                headers=self.headers,
                name="/api/v1/flights/{id}/booked-seats")

    @tag("search")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(AuthenticatedUser):
    """
    TEST 3: Bad input must produce 4xx, never 5xx.
    """
    wait_time = between(0.5, 1.5)

    def expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_flight(self):
        with self.client.post("/api/v1/bookings/",
            json={"flight_id": 999999, "passengers": [random_passenger("1A")]},
            headers=self.headers, catch_response=True) as resp:
            self.expect(resp, [404])

    @tag("edge")
    @task
    def no_passengers(self):
        with self.client.post("/api/v1/bookings/",
            json={"flight_id": CONTENTION_FLIGHT_ID, "passengers": []},
            headers=self.headers, catch_response=True) as resp:
            self.expect(resp, [422])

    @tag("edge")
    @task
    def duplicate_seats(self):
        with self.client.post("/api/v1/bookings/",
            json={
                "flight_id": CONTENTION_FLIGHT_ID,
                "passengers": [random_passenger("9Z"), random_passenger("9Z")],
            },
            headers=self.headers, catch_response=True) as resp:
            self.expect(resp, [409])

    @tag("edge")
    @task
    def bad_date(self):
        with self.client.get("/api/v1/flights/search",
            params={"date": "next tuesday"},
            headers=self.headers, catch_response=True) as resp:
            self.expect(resp, [422])

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post("/api/v1/bookings/",
            json={"flight_id": CONTENTION_FLIGHT_ID, "passengers": [random_passenger()]},
            catch_response=True) as resp:
            self.expect(resp, [401])
