"""
Locust Load Test Suite

Users are managed by the campus identity service, so the participant and
organizer accounts must already exist. Point the suite at them with:

  LOAD_ORGANIZER_ID=1           # organizer that owns the test events
  LOAD_PARTICIPANT_IDS=2-501    # inclusive id range of seeded participants
  LOAD_SLOTS=10                 # slots on the concurrency event

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test overbooking
  locust -f locustfile.py --tags merch        # Test stock overselling
  locust -f locustfile.py --tags scan         # Test attendance scans
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests
"""

import os
import random
from datetime import datetime, timezone, timedelta
from itertools import count

import httpx
from locust import HttpUser, task, between, tag, events

ORGANIZER_ID = int(os.environ.get("LOAD_ORGANIZER_ID", "1"))
_first, _, _last = os.environ.get("LOAD_PARTICIPANT_IDS", "2-501").partition("-")
PARTICIPANT_IDS = list(range(int(_first), int(_last or _first) + 1))
SLOTS = int(os.environ.get("LOAD_SLOTS", "10"))

# Shared state
CONCURRENCY_EVENT_ID = None
MERCH_EVENT_ID = None
TICKETS = []
_participants = count()


def next_participant_id():
    """Hand out each seeded participant once, then wrap around."""
    return PARTICIPANT_IDS[next(_participants) % len(PARTICIPANT_IDS)]


def event_dates(days_ahead=30):
    start = datetime.now(timezone.utc) + timedelta(days=days_ahead)
    return {
        "reg_deadline": (start - timedelta(days=1)).isoformat(),
        "start_date": start.isoformat(),
        "end_date": (start + timedelta(hours=6)).isoformat(),
    }


def create_published_event(client, name, config, reg_limit=None, reg_fee="0"):
    payload = {
        "organizer_id": ORGANIZER_ID,
        "name": name,
        "reg_fee": reg_fee,
        "reg_limit": reg_limit,
        "config": config,
        **event_dates(),
    }
    resp = client.post("/api/v1/events", json=payload)
    if resp.status_code != 201:
        print(f"\n✗ Could not create {name}: {resp.status_code} {resp.text}\n")
        return None
    event_id = resp.json()["id"]
    client.patch(f"/api/v1/events/{event_id}/status",
        json={"organizer_id": ORGANIZER_ID, "status": "PUBLISHED"})
    return event_id


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    """Setup: Create the small events every scenario fights over."""
    global CONCURRENCY_EVENT_ID, MERCH_EVENT_ID
    print("\n" + "="*60)
    print("SETUP: Creating load test events...")
    print("="*60)

    with httpx.Client(base_url=environment.host) as client:
        CONCURRENCY_EVENT_ID = create_published_event(
            client, "Concurrency Test Event", {"type": "NORMAL", "fields": []}, reg_limit=SLOTS,
        )
        MERCH_EVENT_ID = create_published_event(
            client,
            "Merch Test Drop",
            {
                "type": "MERCH",
                "per_participant_limit": 2,
                "variants": [
                    {"sku": "TEE-M", "label": "Tee M", "stock": 5},
                    {"sku": "TEE-L", "label": "Tee L", "stock": 5},
                ],
            },
            reg_fee="300",
        )
    print(f"\n✓ Event {CONCURRENCY_EVENT_ID} with {SLOTS} slots, merch event {MERCH_EVENT_ID}\n")


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - many participants → few slots

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT COUNT(*) FROM participations
      WHERE event_id = X AND status IN ('pending', 'confirmed');
    Should be ≤ LOAD_SLOTS, and equal to capacity_ledger.consumed
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.participant_id = next_participant_id()

    @tag("concurrency")
    @task
    def register_limited_slots(self):
        """All users fight for the same slots."""
        if not CONCURRENCY_EVENT_ID:
            return

        with self.client.post("/api/v1/participations",
            json={
                "event_id": CONCURRENCY_EVENT_ID,
                "participant_id": self.participant_id,
                "request": {"type": "NORMAL", "answers": {}},
            },
            catch_response=True
        ) as resp:
            if resp.status_code == 201:
                TICKETS.append(resp.json()["ticket_id"])
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: full or already registered
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class MerchUser(HttpUser):
    """
    TEST 2: Stock - purchases race for a handful of variants

    Run: locust -f locustfile.py --tags merch -u 50 -r 25 --run-time 30s

    After test, verify for each sku:
      stock_ledger.reserved == SUM(quantity) of active participations
    """
    wait_time = between(0, 0.2)

    def on_start(self):
        self.participant_id = next_participant_id()

    @tag("merch")
    @task
    def buy_variant(self):
        if not MERCH_EVENT_ID:
            return

        with self.client.post("/api/v1/participations",
            json={
                "event_id": MERCH_EVENT_ID,
                "participant_id": self.participant_id,
                "request": {
                    "type": "MERCH",
                    "sku": random.choice(["TEE-M", "TEE-L"]),
                    "quantity": random.randint(1, 2),
                    "payment_method": "upi",
                },
            },
            name="/api/v1/participations [merch]",
            catch_response=True
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ScannerUser(HttpUser):
    """
    TEST 3: Attendance - the same tickets scanned from several gates

    Run together with ConcurrencyUser so tickets exist:
      locust -f locustfile.py --tags concurrency scan -u 60 -r 30 --run-time 30s

    Every ticket should produce exactly one audit entry.
    """
    wait_time = between(0.1, 0.3)

    @tag("scan")
    @task
    def scan_ticket(self):
        if not TICKETS:
            return

        with self.client.post(f"/api/v1/events/{CONCURRENCY_EVENT_ID}/attendance/scan",
            json={"ticket_id": random.choice(TICKETS)},
            name="/api/v1/events/{id}/attendance/scan",
            catch_response=True
        ) as resp:
            if resp.status_code == 200:
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("scan")
    @task(1)
    def health_check(self):
        """Monitor system health."""
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 4: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.participant_id = random.choice(PARTICIPANT_IDS)

    @tag("edge")
    @task
    def invalid_event_id(self):
        """Register for a non-existent event."""
        with self.client.post("/api/v1/participations",
            json={
                "event_id": 999999,
                "participant_id": self.participant_id,
                "request": {"type": "NORMAL", "answers": {}},
            },
            catch_response=True
        ) as resp:
            if resp.status_code == 404:
                resp.success()
            else:
                resp.failure(f"Expected 404, got {resp.status_code}")

    @tag("edge")
    @task
    def zero_quantity(self):
        """Try to buy zero units."""
        with self.client.post("/api/v1/participations",
            json={
                "event_id": MERCH_EVENT_ID or 1,
                "participant_id": self.participant_id,
                "request": {"type": "MERCH", "sku": "TEE-M", "quantity": 0, "payment_method": "upi"},
            },
            catch_response=True
        ) as resp:
            if resp.status_code in [400, 422]:
                resp.success()
            else:
                resp.failure(f"Expected 400/422, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_sku(self):
        """Try to buy a variant that does not exist."""
        with self.client.post("/api/v1/participations",
            json={
                "event_id": MERCH_EVENT_ID or 1,
                "participant_id": self.participant_id,
                "request": {"type": "MERCH", "sku": "NOPE", "quantity": 1, "payment_method": "upi"},
            },
            catch_response=True
        ) as resp:
            if resp.status_code in [400, 404, 409]:
                resp.success()
            else:
                resp.failure(f"Expected 400/404/409, got {resp.status_code}")

    @tag("edge")
    @task
    def forged_scan(self):
        """Scan a ticket id that was never issued."""
        with self.client.post(f"/api/v1/events/{CONCURRENCY_EVENT_ID or 1}/attendance/scan",
            json={"ticket_id": "TKT-FORGED-0000"},
            catch_response=True
        ) as resp:
            if resp.status_code == 404:
                resp.success()
            else:
                resp.failure(f"Expected 404, got {resp.status_code}")

    @tag("edge")
    @task
    def malformed_json(self):
        """Send garbage data."""
        with self.client.post("/api/v1/participations",
            data="not json at all",
            catch_response=True
        ) as resp:
            if resp.status_code in [400, 422]:
                resp.success()
            else:
                resp.failure(f"Expected 400/422, got {resp.status_code}")
