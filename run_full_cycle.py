"""
Full Cycle Script for the MedClaim Lifecycle Service

Walks one claim through the complete workflow against a running server:
1. Doctor records and submits a treatment
2. Claim is raised from the treatment and submitted
3. Insurance opens the case and approves it (payment is derived)
4. Bank rejects the first payment, re-issues it, and completes it
5. Dashboard summary

Run with: python run_full_cycle.py

Prerequisites:
- FastAPI server running on http://localhost:8000
  (uvicorn medclaim.main:app --reload --port 8000)
"""
import os
import sys

import requests

# Configuration
API_URL = os.getenv("MEDCLAIM_API_URL", "http://localhost:8000")


# Colors for terminal output
class Colors:
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    BLUE = '\033[94m'
    BOLD = '\033[1m'
    END = '\033[0m'


def print_step(step_num: int, message: str):
    print(f"\n{Colors.BOLD}{Colors.BLUE}[Step {step_num}]{Colors.END} {message}")


def print_success(message: str):
    print(f"  {Colors.GREEN}✓ {message}{Colors.END}")


def print_error(message: str):
    print(f"  {Colors.RED}✗ {message}{Colors.END}")


def print_info(message: str):
    print(f"  → {message}")


def call(method: str, path: str, **kwargs) -> dict:
    """Call the API, exiting on any error response."""
    response = requests.request(method, f"{API_URL}{path}", timeout=10, **kwargs)
    if response.status_code >= 400:
        print_error(f"{method} {path} returned {response.status_code}: {response.text}")
        sys.exit(1)
    return response.json()


def step_health_check() -> bool:
    print_step(0, "Testing API Connection")
    try:
        call("GET", "/health")
    except requests.exceptions.ConnectionError:
        print_error("Cannot connect to API. Is the server running?")
        print_info("Expected: uvicorn medclaim.main:app --reload --port 8000")
        return False
    print_success("API is healthy and responding")
    return True


def step_record_treatment() -> str:
    print_step(1, "Recording Treatment (Doctor)")
    treatment = call("POST", "/treatments/", json={
        "doctor_id": "doc-001",
        "doctor_name": "Dr. Sarah Johnson",
        "patient_id": "pat-001",
        "patient_name": "John Smith",
        "diagnosis": "Hypertension follow-up",
        "treatment_details": "Blood pressure review and medication adjustment",
        "cost": "250.00",
        "medical_reports": ["bp-readings.pdf"],
    })
    call("POST", f"/treatments/{treatment['id']}/submit")
    print_success(f"Treatment {treatment['id'][:8]}... recorded and submitted")
    return treatment["id"]


def step_raise_claim(treatment_id: str) -> str:
    print_step(2, "Raising and Submitting Claim (Patient)")
    result = call("POST", f"/claims/from-treatment/{treatment_id}", json={"actor": "Patient"})
    claim_id = result["claim"]["id"]
    print_info(f"Claim {result['claim']['claim_number']} created as {result['claim']['status']}")
    result = call("POST", f"/claims/{claim_id}/submit", json={"actor": "Patient"})
    print_success(f"Claim submitted on {result['claim']['submitted_date']}")
    return claim_id


def step_review(claim_id: str) -> str:
    print_step(3, "Reviewing Claim (Insurance)")
    call("POST", f"/claims/{claim_id}/start-review", json={"actor": "Insurance Reviewer"})
    result = call("POST", f"/claims/{claim_id}/review", json={
        "decision": "approved",
        "notes": "Routine follow-up covered under policy",
    })
    payment = result["payment"]
    print_success(f"Claim {result['claim']['status']}")
    print_info(f"Payment {payment['id'][:8]}... for {payment['amount']} is {payment['status']}")
    return payment["id"]


def step_pay(claim_id: str, payment_id: str):
    print_step(4, "Processing Payment (Bank)")
    call("POST", f"/payments/{payment_id}/reject", json={"failure_reason": "Beneficiary account mismatch"})
    claim = call("GET", f"/claims/{claim_id}")["claim"]
    print_info(f"First payment rejected; claim remains {claim['status']}")

    reissued = call("POST", "/payments/", json={"claim_id": claim_id, "notes": "Re-issued"})
    payment_id = reissued["payment"]["id"]
    call("POST", f"/payments/{payment_id}/initiate")
    result = call("POST", f"/payments/{payment_id}/complete", json={"notes": "Paid via bank transfer", "transaction_id": "TXN-000123"})
    print_success(f"Payment {result['payment']['status']}; claim {result['claim']['status']}")


def step_dashboard_summary():
    print_step(5, "Dashboard Summary")
    result = call("GET", "/claims/dashboard/summary")
    print_success("Dashboard summary retrieved")
    print_info(f"Total Claims: {result['total_claims']}")
    print_info(f"Claim Status Counts: {result['claim_status_counts']}")
    print_info(f"Total Paid: {result['total_paid']}")


def run_full_cycle():
    """Run the complete cycle."""
    print(f"\n{'='*60}")
    print(f"{Colors.BOLD}  FULL CYCLE - MedClaim Lifecycle Service{Colors.END}")
    print(f"{'='*60}")
    print(f"\nAPI URL: {API_URL}")

    if not step_health_check():
        return

    treatment_id = step_record_treatment()
    claim_id = step_raise_claim(treatment_id)
    payment_id = step_review(claim_id)
    step_pay(claim_id, payment_id)
    step_dashboard_summary()

    print(f"\n{'='*60}")
    print(f"{Colors.BOLD}{Colors.GREEN}  ✓ FULL CYCLE COMPLETE{Colors.END}")
    print(f"{'='*60}")
    print(f"\nClaim ID: {claim_id}")
    print(f"History: {API_URL}/claims/{claim_id}/history")
    print(f"API docs: {API_URL}/docs")


if __name__ == "__main__":
    run_full_cycle()
