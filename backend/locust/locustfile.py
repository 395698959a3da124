"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Same seats, many buyers
  locust -f locustfile.py --tags throughput   # Cached listings
  locust -f locustfile.py --tags edge         # Bad input
  locust -f locustfile.py                     # All tests

The first ConcurrencyUser registers an organizer and sets up the show.
"""

import random
import string
from datetime import datetime, timezone, timedelta

from locust import HttpUser, task, between, tag, events

# Shared state
EVENT_IDS = []
CONTESTED = {"event_id": None, "performance_id": None}
CONTESTED_SEATS = [("ORCH", "A", str(n)) for n in range(1, 11)]


def random_email():
    return f"load_{random.randint(10000, 99999)}_{random.randint(0, 999)}@test.com"


def random_username():
    return "u_" + "".join(random.choices(string.ascii_lowercase, k=10))


def sign_up(client, role="customer"):
    email = random_email()
    client.post("/api/v1/auth/register", json={
        "email": email,
        "username": random_username(),
        "password": "loadtest123",
        "role": role,
    })
    resp = client.post("/api/v1/auth/login", json={"email": email, "password": "loadtest123"})
    if resp.status_code != 200:
        return {}
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def paid_payment(client, headers, amount="50.00"):
    """Create and complete a simulated payment; returns its id or None."""
    resp = client.post("/api/v1/payments/", json={"amount": amount}, headers=headers,
                       name="/api/v1/payments/")
    if resp.status_code != 201:
        return None
    payment_id = resp.json()["id"]
    client.post(f"/api/v1/payments/{payment_id}/complete", headers=headers,
                name="/api/v1/payments/{id}/complete")
    return payment_id


def checkout_body(payment_id, performance_id, seats):
    return {
        "payment_id": payment_id,
        "performance_id": performance_id,
        "tickets": [
            {"category": "Standard", "section": s, "row": r, "seat_number": n} for s, r, n in seats
        ],
        "customer_details": {"email": "load@test.com", "first_name": "Load"},
    }


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print("SETUP: first ConcurrencyUser creates a 10-seat performance")
    print("=" * 60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - 100 buyers -> the same 10 seats

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify no seat was sold twice:
      SELECT section, seat_row, seat_number, COUNT(*) FROM tickets
      WHERE performance_id = X AND status NOT IN ('cancelled', 'refunded')
      GROUP BY 1, 2, 3 HAVING COUNT(*) > 1;
    Should return no rows, and performances.available_tickets should be >= 0.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = sign_up(self.client)
        if CONTESTED["performance_id"] is None:
            self._create_contested_performance()

    def _create_contested_performance(self):
        organizer = sign_up(self.client, role="organizer")
        if not organizer:
            return
        resp = self.client.post("/api/v1/events/", json={"title": "Concurrency Test Event", "is_published": True}, headers=organizer)
        if resp.status_code != 201:
            return
        event_id = resp.json()["id"]
        starts_at = datetime.now(timezone.utc) + timedelta(days=30)
        resp = self.client.post(
            f"/api/v1/events/{event_id}/performances",
            json={
                "starts_at": starts_at.isoformat(),
                "ends_at": (starts_at + timedelta(hours=2)).isoformat(),
                "total_capacity": len(CONTESTED_SEATS),
                "ticket_types": [
                    {"name": "Standard", "price": "50.00", "available_count": len(CONTESTED_SEATS)}
                ],
            },
            headers=organizer,
        )
        if resp.status_code == 201:
            CONTESTED.update(event_id=event_id, performance_id=resp.json()["id"])
            print(f"\n+ Created performance {CONTESTED['performance_id']} with {len(CONTESTED_SEATS)} seats\n")

    @tag("concurrency")
    @task
    def buy_contested_seat(self):
        """All users fight for the same 10 seats."""
        if not CONTESTED["performance_id"] or not self.headers:
            return
        payment_id = paid_payment(self.client, self.headers)
        if payment_id is None:
            return

        seats = [random.choice(CONTESTED_SEATS)]
        with self.client.post("/api/v1/orders/",
            json=checkout_body(payment_id, CONTESTED["performance_id"], seats),
            headers=self.headers,
            name="/api/v1/orders/ [contested]",
            catch_response=True
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: seat taken or sold out
            elif resp.status_code == 503:
                resp.failure("Retries exhausted under contention")
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis (REDIS_ENABLED=false), run again

    Compare avg response time, requests/sec, P95/P99 latency.
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def list_events_cached(self):
        page = random.randint(1, 5)
        resp = self.client.get(f"/api/v1/events/?page={page}&page_size=20",
            name="/api/v1/events/ [cached]")
        if resp.status_code == 200:
            for event in resp.json().get("events", []):
                if event["id"] not in EVENT_IDS:
                    EVENT_IDS.append(event["id"])

    @tag("throughput", "read")
    @task(5)
    def list_performances_cached(self):
        if EVENT_IDS:
            self.client.get(f"/api/v1/events/{random.choice(EVENT_IDS)}/performances",
                name="/api/v1/events/{id}/performances [cached]")

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
        self.headers = sign_up(self.client)

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_performance(self):
        payment_id = paid_payment(self.client, self.headers)
        with self.client.post("/api/v1/orders/",
            json=checkout_body(payment_id or 1, 999999, [("ORCH", "A", "1")]),
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, [400, 404])

    @tag("edge")
    @task
    def unpaid_checkout(self):
        """Checkout with a payment that was never completed."""
        resp = self.client.post("/api/v1/payments/", json={"amount": "10.00"}, headers=self.headers)
        if resp.status_code != 201 or not CONTESTED["performance_id"]:
            return
        with self.client.post("/api/v1/orders/",
            json=checkout_body(resp.json()["id"], CONTESTED["performance_id"], [("ORCH", "Z", "99")]),
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def empty_ticket_list(self):
        with self.client.post("/api/v1/orders/",
            json=checkout_body(1, 1, []),
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, [422])

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post("/api/v1/orders/",
            data="not json at all",
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, [400, 422])

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post("/api/v1/orders/",
            json=checkout_body(1, 1, [("ORCH", "A", "1")]),
            catch_response=True
        ) as resp:
            self._expect(resp, [401])
