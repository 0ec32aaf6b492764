"""
Locust Load Test Suite

Creating events needs an organizer account. Promote one through the admin
API first and export its credentials:
  export LOAD_ORGANIZER_EMAIL=... LOAD_ORGANIZER_PASSWORD=...

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test overbooking
  locust -f locustfile.py --tags throughput   # Test cache
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests
"""

import os
import random
import string
from datetime import date, timedelta

from locust import HttpUser, between, events, tag, task

CONCURRENCY_CAPACITY = 10
PASSWORD = "loadtest-pass"

# Shared state
EVENT_IDS = []
CONCURRENCY_EVENT_ID = None


def random_email():
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=10))
    return f"load_{suffix}@test.com"


def future_date(days: int) -> str:
    return (date.today() + timedelta(days=days)).isoformat()


def event_payload(title: str, capacity: int, days_ahead: int = 30) -> dict:
    return {
        "title": title,
        "description": "Created by the load test",
        "date": future_date(days_ahead),
        "time": "18:30",
        "venue": "Load Test Hall",
        "category": random.choice(["conference", "workshop", "seminar", "party"]),
        "capacity": capacity,
        "price": 0,
    }


def signup(client) -> dict:
    """Register a fresh user and return auth headers (empty on failure)."""
    email = random_email()
    client.post("/api/v1/auth/register", json={
        "name": "Load Tester",
        "email": email,
        "password": PASSWORD,
    })
    resp = client.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD})
    if resp.status_code != 200:
        return {}
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def organizer_login(client) -> dict:
    email = os.environ.get("LOAD_ORGANIZER_EMAIL")
    password = os.environ.get("LOAD_ORGANIZER_PASSWORD")
    if not email or not password:
        return {}
    resp = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    if resp.status_code != 200:
        return {}
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print("SETUP: concurrency event is created by the first ConcurrencyUser")
    if not os.environ.get("LOAD_ORGANIZER_EMAIL"):
        print("WARNING: LOAD_ORGANIZER_EMAIL not set, event creation is skipped")
    print("=" * 60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - 100 users -> 10 spots

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT reserved_count, capacity FROM events WHERE id = X;
      SELECT COUNT(*) FROM reservations WHERE event_id = X AND status = 'active';
    Both counts should match and be <= 10
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        global CONCURRENCY_EVENT_ID
        self.headers = signup(self.client)

        if CONCURRENCY_EVENT_ID is None:
            organizer = organizer_login(self.client)
            if organizer:
                resp = self.client.post(
                    "/api/v1/events/",
                    json=event_payload("Concurrency Test Event", CONCURRENCY_CAPACITY),
                    headers=organizer,
                )
                if resp.status_code == 201:
                    CONCURRENCY_EVENT_ID = resp.json()["event"]["id"]
                    print(f"\nCreated event {CONCURRENCY_EVENT_ID} with {CONCURRENCY_CAPACITY} spots\n")

    @tag("concurrency")
    @task
    def reserve_limited_spots(self):
        """All users fight for the same 10 spots."""
        if not CONCURRENCY_EVENT_ID or not self.headers:
            return

        with self.client.post(
            f"/api/v1/events/{CONCURRENCY_EVENT_ID}/reservation",
            headers=self.headers,
            name="/api/v1/events/{id}/reservation",
            catch_response=True,
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()  # 409: full or already reserved
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false on the API, run again
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def list_events_cached(self):
        page = random.randint(1, 5)
        category = random.choice(["", "&category=workshop", "&category=party"])
        self.client.get(
            f"/api/v1/events/?page={page}&limit=12{category}",
            name="/api/v1/events/ [cached]",
        )

    @tag("throughput", "read")
    @task(2)
    def list_categories(self):
        self.client.get("/api/v1/events/categories")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = signup(self.client)

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_event(self):
        with self.client.post(
            "/api/v1/events/999999/reservation",
            headers=self.headers,
            name="/api/v1/events/{missing}/reservation",
            catch_response=True,
        ) as resp:
            self._expect(resp, (404,))

    @tag("edge")
    @task
    def cancel_without_reservation(self):
        with self.client.delete(
            "/api/v1/events/999999/reservation",
            headers=self.headers,
            name="/api/v1/events/{missing}/reservation",
            catch_response=True,
        ) as resp:
            self._expect(resp, (400, 404))

    @tag("edge")
    @task
    def non_numeric_event_id(self):
        with self.client.post(
            "/api/v1/events/abc/reservation",
            headers=self.headers,
            name="/api/v1/events/{bad}/reservation",
            catch_response=True,
        ) as resp:
            self._expect(resp, (422,))

    @tag("edge")
    @task
    def regular_user_creates_event(self):
        with self.client.post(
            "/api/v1/events/",
            json=event_payload("Not allowed", 5),
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, (403,))

    @tag("edge")
    @task
    def garbage_token(self):
        with self.client.post(
            "/api/v1/events/1/reservation",
            headers={"Authorization": "Bearer not-a-token"},
            name="/api/v1/events/{id}/reservation [bad token]",
            catch_response=True,
        ) as resp:
            self._expect(resp, (401,))

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post(
            "/api/v1/events/1/reservation",
            name="/api/v1/events/{id}/reservation [no auth]",
            catch_response=True,
        ) as resp:
            self._expect(resp, (401,))


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Mostly browsing, some reserve/cancel churn.
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.headers = signup(self.client)
        self.reserved = set()

    @task(50)
    def browse_events(self):
        resp = self.client.get("/api/v1/events/?page=1&upcoming=true")
        if resp.status_code == 200:
            for event in resp.json().get("events", []):
                if event["id"] not in EVENT_IDS:
                    EVENT_IDS.append(event["id"])

    @task(20)
    def view_event(self):
        if EVENT_IDS and self.headers:
            self.client.get(
                f"/api/v1/events/{random.choice(EVENT_IDS)}",
                headers=self.headers,
                name="/api/v1/events/{id}",
            )

    @task(10)
    def reserve(self):
        if EVENT_IDS and self.headers:
            event_id = random.choice(EVENT_IDS)
            with self.client.post(
                f"/api/v1/events/{event_id}/reservation",
                headers=self.headers,
                name="/api/v1/events/{id}/reservation",
                catch_response=True,
            ) as resp:
                if resp.status_code == 201:
                    self.reserved.add(event_id)
                    resp.success()
                elif resp.status_code == 409:
                    resp.success()

    @task(4)
    def cancel(self):
        if self.reserved and self.headers:
            event_id = self.reserved.pop()
            self.client.delete(
                f"/api/v1/events/{event_id}/reservation",
                headers=self.headers,
                name="/api/v1/events/{id}/reservation [cancel]",
            )

    @task(2)
    def my_reservations(self):
        if self.headers:
            self.client.get("/api/v1/reservations/", headers=self.headers)
