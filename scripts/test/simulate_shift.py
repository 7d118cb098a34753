# scripts/test/simulate_shift.py
"""
Drive a running backend through one full valet cycle:
check-in → retrieval request → assign → driver steps → payment → card scan → handover.
Usage: python scripts/test/simulate_shift.py --plate ABC-123 --driver drv-1 [--priority]
"""

import argparse
import requests

BACKEND_URL = "http://127.0.0.1:8080/api/v1"
DRIVER_STEPS = ["assigned", "keys_picked", "walking", "driving"]


def call(method, path, **kwargs):
    resp = requests.request(method, f"{BACKEND_URL}{path}", timeout=10, **kwargs)
    body = resp.json()
    print(f"{method} {path} → HTTP {resp.status_code}: {body}")
    resp.raise_for_status()
    return body


def run(plate, driver_id, priority, payment_method):
    checkin = call("POST", "/checkin", json={"plate": plate, "make": "Test", "model": "Sim", "color": "grey"})
    card_id = checkin["card_id"]

    request = call("POST", "/retrieval", json={"card_id": card_id, "is_priority": priority,
                                               "payment_method": payment_method})
    request_id = request["id"]

    call("POST", "/drivers", json={"driver_id": driver_id, "name": driver_id})
    call("POST", f"/retrieval/{request_id}/assign", json={"driver_id": driver_id})
    for step in DRIVER_STEPS:
        call("POST", f"/retrieval/{request_id}/advance", json={"from_status": step})

    call("POST", f"/retrieval/{request_id}/payment", json={"payment_method": payment_method})
    call("POST", f"/retrieval/{request_id}/verify-card", json={"card_id": card_id})
    call("POST", f"/retrieval/{request_id}/complete")
    call("GET", "/hooks/stats")
    call("GET", f"/cards/{card_id}/safe-to-clear")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Simulate one valet check-in/retrieval cycle")
    parser.add_argument("--plate", default="ABC-123")
    parser.add_argument("--driver", default="drv-1")
    parser.add_argument("--priority", action="store_true")
    parser.add_argument("--payment", default="cash")
    parser.add_argument("--url", default=BACKEND_URL)
    args = parser.parse_args()

    BACKEND_URL = args.url.rstrip("/")
    run(args.plate, args.driver, args.priority, args.payment)
