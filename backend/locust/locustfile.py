"""
Locust Load Test Suite

Needs a county admin to set up events (the bootstrap admin works):
  export LOCUST_ADMIN_EMAIL=admin@example.com LOCUST_ADMIN_PASSWORD=...

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test overselling
  locust -f locustfile.py --tags throughput   # Test cache
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests
"""

import os
import random
import string
from datetime import datetime, timezone, timedelta

from locust import HttpUser, task, between, tag, events

ADMIN_EMAIL = os.getenv("LOCUST_ADMIN_EMAIL", "admin@example.com")
ADMIN_PASSWORD = os.getenv("LOCUST_ADMIN_PASSWORD", "changeme123")

# Shared state
EVENT_IDS = []
CONCURRENCY_EVENT_ID = None
CONCURRENCY_SPOTS = 10


def random_attendee(event_id, num_tickets=1):
    name = "Load " + "".join(random.choices(string.ascii_lowercase, k=6))
    return {
        "event_id": event_id,
        "attendee_name": name,
        "attendee_email": f"load_{random.randint(10000, 99999)}@example.com",
        "num_tickets": num_tickets,
    }


def admin_headers(client):
    resp = client.post("/api/v1/auth/login", json={
        "email": ADMIN_EMAIL,
        "password": ADMIN_PASSWORD,
    })
    if resp.status_code != 200:
        return {}
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def create_event(client, headers, title, capacity):
    churches = client.get("/api/v1/churches/").json()
    if churches:
        church_id = churches[0]["id"]
    else:
        church_id = client.post(
            "/api/v1/churches/",
            json={"name": "Load Test Church"},
            headers=headers,
        ).json()["id"]

    future = (datetime.now(timezone.utc) + timedelta(days=30)).isoformat()
    resp = client.post(
        "/api/v1/events/",
        json={
            "church_id": church_id,
            "title": title,
            "location": "Load Test Hall",
            "event_date": future,
            "capacity": capacity,
            "is_free": True,
            "is_published": True,
        },
        headers=headers,
    )
    return resp.json()["id"] if resp.status_code == 201 else None


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "="*60)
    print(f"SETUP: concurrency event gets {CONCURRENCY_SPOTS} spots")
    print("="*60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - 100 attendees -> 10 spots

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT SUM(num_tickets) FROM registrations
      WHERE event_id = X AND registration_status != 'cancelled';
    Should be <= 10, and events.spots_remaining should be 10 minus that sum
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        global CONCURRENCY_EVENT_ID
        if not CONCURRENCY_EVENT_ID:
            headers = admin_headers(self.client)
            if headers:
                CONCURRENCY_EVENT_ID = create_event(
                    self.client, headers, "Concurrency Test Event", CONCURRENCY_SPOTS
                )
                if CONCURRENCY_EVENT_ID:
                    print(f"\nCreated event {CONCURRENCY_EVENT_ID} with {CONCURRENCY_SPOTS} spots\n")

    @tag("concurrency")
    @task
    def register_for_limited_spots(self):
        """All attendees fight for the same 10 spots."""
        if not CONCURRENCY_EVENT_ID:
            return

        with self.client.post("/api/v1/registrations/",
            json=random_attendee(CONCURRENCY_EVENT_ID),
            catch_response=True
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: sold out
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false, run again

    Compare:
      - Avg response time
      - Requests/sec
      - P95/P99 latency
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def list_events_cached(self):
        """Hammer the cached endpoint."""
        page = random.randint(1, 5)
        resp = self.client.get(f"/api/v1/events/?page={page}&page_size=20",
            name="/api/v1/events/ [cached]")
        if resp.status_code == 200:
            for event in resp.json().get("events", []):
                if event["id"] not in EVENT_IDS:
                    EVENT_IDS.append(event["id"])

    @tag("throughput", "read")
    @task(3)
    def get_event_detail(self):
        """Read individual events (never cached)."""
        if EVENT_IDS:
            event_id = random.choice(EVENT_IDS)
            self.client.get(f"/api/v1/events/{event_id}",
                name="/api/v1/events/{id}")

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

    def _expect(self, payload, allowed, **kwargs):
        with self.client.post("/api/v1/registrations/",
            json=payload,
            catch_response=True,
            **kwargs
        ) as resp:
            if resp.status_code in allowed:
                resp.success()
            else:
                resp.failure(f"Expected {allowed}, got {resp.status_code}")

    @tag("edge")
    @task
    def invalid_event_id(self):
        self._expect(random_attendee("no-such-event"), [404])

    @tag("edge")
    @task
    def zero_tickets(self):
        self._expect(random_attendee(CONCURRENCY_EVENT_ID or "x", num_tickets=0), [422])

    @tag("edge")
    @task
    def huge_ticket_count(self):
        self._expect(random_attendee(CONCURRENCY_EVENT_ID or "x", num_tickets=999999), [422])

    @tag("edge")
    @task
    def bad_email(self):
        payload = random_attendee(CONCURRENCY_EVENT_ID or "x")
        payload["attendee_email"] = "not-an-email"
        self._expect(payload, [422])

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post("/api/v1/registrations/",
            data="not json at all",
            catch_response=True
        ) as resp:
            if resp.status_code in [400, 422]:
                resp.success()
            else:
                resp.failure(f"Expected 400/422, got {resp.status_code}")

    @tag("edge")
    @task
    def cancel_without_auth(self):
        with self.client.delete("/api/v1/registrations/anything",
            catch_response=True
        ) as resp:
            if resp.status_code == 401:
                resp.success()
            else:
                resp.failure(f"Expected 401, got {resp.status_code}")


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Simulates real traffic:
      - Mostly browsing
      - Some registrations
    """
    wait_time = between(1, 3)

    @task(50)
    def browse_events(self):
        resp = self.client.get("/api/v1/events/?page=1&page_size=20")
        if resp.status_code == 200:
            for event in resp.json().get("events", []):
                if event["id"] not in EVENT_IDS:
                    EVENT_IDS.append(event["id"])

    @task(20)
    def view_event(self):
        if EVENT_IDS:
            self.client.get(f"/api/v1/events/{random.choice(EVENT_IDS)}",
                name="/api/v1/events/{id}")

    @task(10)
    def register(self):
        if not EVENT_IDS:
            return
        with self.client.post("/api/v1/registrations/",
            json=random_attendee(random.choice(EVENT_IDS), num_tickets=random.randint(1, 3)),
            catch_response=True
        ) as resp:
            if resp.status_code in [201, 400, 409]:
                resp.success()  # 400: external or past event, 409: sold out
            else:
                resp.failure(f"Unexpected: {resp.status_code}")
