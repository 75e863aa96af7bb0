"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags last-place   # Race for the final places of one tour
  locust -f locustfile.py --tags browse       # Listing cache and tour pages
  locust -f locustfile.py --tags churn        # Book / cancel / re-book cycles
  locust -f locustfile.py                     # All tests

The organizer used to create tours must exist; set LOCUST_ORGANIZER_EMAIL and
LOCUST_ORGANIZER_PASSWORD, or let the first start register one.
"""

import os
import random
import string
from datetime import date, timedelta

from locust import HttpUser, task, between, tag, events

# Shared state
TOUR_IDS = []
CONTESTED_TOUR_ID = None
CONTESTED_PLACES = 10

ORGANIZER_EMAIL = os.getenv("LOCUST_ORGANIZER_EMAIL", "load_organizer@test.com")
ORGANIZER_PASSWORD = os.getenv("LOCUST_ORGANIZER_PASSWORD", "organizer123")

COUNTRIES = ["nepal", "peru", "india", "portugal", "japan", "morocco"]
DIFFICULTIES = ["easy", "moderate", "challenging", "intense"]


def random_email():
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=10))
    return f"load_{suffix}@test.com"


def register_and_login(client, role="participant", email=None, password="participant123"):
    """Return auth headers for a (possibly new) account, or {} on failure."""
    email = email or random_email()
    client.post("/api/v1/auth/register", json={
        "email": email,
        "full_name": f"Load {role.title()}",
        "password": password,
        "role": role,
    }, name="/api/v1/auth/register")

    resp = client.post("/api/v1/auth/login", json={
        "email": email,
        "password": password,
    }, name="/api/v1/auth/login")
    if resp.status_code != 200:
        return {}
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def tour_payload(max_participants):
    start = date.today() + timedelta(days=random.randint(14, 180))
    return {
        "title": f"Retreat {random.randint(1, 100000)}",
        "description": "Load test tour",
        "start_date": start.isoformat(),
        "end_date": (start + timedelta(days=random.randint(3, 14))).isoformat(),
        "price": f"{random.randint(300, 4000)}.00",
        "currency": "USD",
        "max_participants": max_participants,
        "status": "published",
        "country": random.choice(COUNTRIES),
        "difficulty": random.choice(DIFFICULTIES),
    }


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"SETUP: contested tour will have {CONTESTED_PLACES} places")
    print("=" * 60)


class LastPlaceUser(HttpUser):
    """
    TEST 1: Many participants race for the places of one tour

    Run: locust -f locustfile.py --tags last-place -u 100 -r 50 --run-time 30s

    Afterwards compare:
      SELECT COUNT(*) FROM bookings WHERE tour_id = X AND status != 'cancelled';
    with max_participants. The capacity check is not fenced, so a small
    overshoot under heavy contention is possible; duplicates per participant
    are not.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        global CONTESTED_TOUR_ID
        if not CONTESTED_TOUR_ID:
            organizer = register_and_login(
                self.client, role="organizer", email=ORGANIZER_EMAIL, password=ORGANIZER_PASSWORD
            )
            resp = self.client.post(
                "/api/v1/tours/", json=tour_payload(CONTESTED_PLACES), headers=organizer
            )
            if resp.status_code == 201:
                CONTESTED_TOUR_ID = resp.json()["id"]
                print(f"\nCreated contested tour {CONTESTED_TOUR_ID}\n")

        self.headers = register_and_login(self.client)

    @tag("last-place")
    @task
    def book_contested_tour(self):
        if not CONTESTED_TOUR_ID or not self.headers:
            return

        with self.client.post(
            f"/api/v1/tours/{CONTESTED_TOUR_ID}/booking",
            headers=self.headers,
            name="/api/v1/tours/{id}/booking [contested]",
            catch_response=True,
        ) as resp:
            if resp.status_code in (200, 201):
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: sold out or already booked
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class BrowsingUser(HttpUser):
    """
    TEST 2: Listing throughput and cache effectiveness

    Run twice, with and without Redis, and compare p95 latency:
      locust -f locustfile.py --tags browse -u 100 -r 20 --run-time 60s
    """
    wait_time = between(0.1, 0.5)

    @tag("browse")
    @task(10)
    def list_tours(self):
        params = {"page": random.randint(1, 3), "sort": random.choice(["newest", "price_asc"])}
        if random.random() < 0.3:
            params["countries"] = random.choice(COUNTRIES)
        resp = self.client.get("/api/v1/tours/", params=params, name="/api/v1/tours/ [cached]")
        if resp.status_code == 200:
            for tour in resp.json().get("tours", []):
                if tour["id"] not in TOUR_IDS:
                    TOUR_IDS.append(tour["id"])

    @tag("browse")
    @task(4)
    def view_tour(self):
        if TOUR_IDS:
            tour_id = random.choice(TOUR_IDS)
            self.client.get(f"/api/v1/tours/{tour_id}", name="/api/v1/tours/{id}")
            self.client.get(f"/api/v1/tours/{tour_id}/booking", name="/api/v1/tours/{id}/booking")

    @tag("browse")
    @task(1)
    def search_inference(self):
        self.client.post(
            "/api/v1/search/infer",
            json={"query": random.choice([
                "easy trek in nepal",
                "something in south america from 2026-05-01 to 2026-05-20",
                "intense adventure in europe",
            ])},
        )

    @tag("browse")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class ChurnUser(HttpUser):
    """
    TEST 3: Book, cancel and book again

    Run: locust -f locustfile.py --tags churn -u 30 -r 10 --run-time 60s

    Each cycle after the first either inserts (hard delete) or re-activates
    the participant's cancelled row (soft cancel). Neither may create a
    second row for the same participant.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = register_and_login(self.client)

    @tag("churn")
    @task
    def book_then_cancel(self):
        if not TOUR_IDS or not self.headers:
            return
        tour_id = random.choice(TOUR_IDS)

        with self.client.post(
            f"/api/v1/tours/{tour_id}/booking",
            headers=self.headers,
            name="/api/v1/tours/{id}/booking [book]",
            catch_response=True,
        ) as resp:
            if resp.status_code in (200, 201, 409):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")
                return

        with self.client.delete(
            f"/api/v1/tours/{tour_id}/booking",
            headers=self.headers,
            name="/api/v1/tours/{id}/booking [cancel]",
            catch_response=True,
        ) as resp:
            if resp.status_code in (200, 404):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("churn")
    @task
    def missing_auth(self):
        with self.client.post(
            "/api/v1/tours/1/booking",
            name="/api/v1/tours/{id}/booking [anonymous]",
            catch_response=True,
        ) as resp:
            if resp.status_code == 401:
                resp.success()
            else:
                resp.failure(f"Expected 401, got {resp.status_code}")
