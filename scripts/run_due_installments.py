#!/usr/bin/env python3
"""
Due Installment Sweep Runner

Triggers the due-installment sweep on a running installment-billing service.
Meant to be called daily by cron or any other external scheduler.

Usage:
    python scripts/run_due_installments.py
    python scripts/run_due_installments.py --as-of 2026-03-25
    python scripts/run_due_installments.py --base-url http://billing:8000 --json

Arguments:
    --base-url: Service URL (defaults to INSTALLMENT_API_URL or http://localhost:8000)
    --as-of: Sweep date, YYYY-MM-DD (defaults to today on the server)
    --json: Output raw JSON instead of formatted text
    --timeout: Request timeout in seconds

Exit status is 1 when the request fails or any plan reported an error.
"""
import argparse
import json
import os
import sys
import uuid
from datetime import datetime

import httpx


def run_sweep(base_url: str, as_of: str = None, timeout: float = 60.0) -> dict:
    """POST the sweep request and return the summary."""
    payload = {"as_of": as_of} if as_of else {}
    response = httpx.post(
        f"{base_url.rstrip('/')}/v1/installment-plans/process-due",
        json=payload,
        headers={"X-Request-ID": f"sweep-{uuid.uuid4()}"},
        timeout=timeout,
    )
    response.raise_for_status()
    return response.json()


def format_summary(summary: dict) -> str:
    """Format the sweep summary for human-readable output."""
    lines = []

    lines.append("=" * 60)
    lines.append(f"INSTALLMENT SWEEP {summary['as_of']}")
    lines.append("=" * 60)

    lines.append(f"\nDue plans:  {summary['total_due']}")
    lines.append(f"Generated:  {summary['processed']}")
    lines.append(f"Errors:     {summary['errors']}")

    processed = summary["details"].get("processed", [])
    if processed:
        lines.append("\n--- Generated ---")
        for item in processed:
            total = item["total_phases"] if item["total_phases"] is not None else "unbounded"
            flag = "  (final phase)" if item["phase_limit_reached"] else ""
            lines.append(
                f"  {item['plan_id']}  phase {item['generated_phases']}/{total}"
                f"  next {item['next_generation_date']}{flag}"
            )

    errors = summary["details"].get("errors", [])
    if errors:
        lines.append("\n--- Errors ---")
        for item in errors:
            lines.append(f"  {item['plan_id']}  {item['outcome']}: {item['error']}")

    lines.append("")
    return "\n".join(lines)


def main():
    parser = argparse.ArgumentParser(description="Run the due-installment sweep")
    parser.add_argument(
        "--base-url",
        default=os.getenv("INSTALLMENT_API_URL", "http://localhost:8000"),
        help="Service URL",
    )
    parser.add_argument("--as-of", help="Sweep date (YYYY-MM-DD)")
    parser.add_argument("--json", action="store_true", help="Output raw JSON")
    parser.add_argument("--timeout", type=float, default=60.0, help="Request timeout in seconds")

    args = parser.parse_args()

    if args.as_of:
        try:
            datetime.strptime(args.as_of, "%Y-%m-%d")
        except ValueError:
            parser.error(f"--as-of must be YYYY-MM-DD, got {args.as_of!r}")

    try:
        summary = run_sweep(args.base_url, as_of=args.as_of, timeout=args.timeout)
    except httpx.HTTPStatusError as e:
        print(f"Error: sweep failed with {e.response.status_code}: {e.response.text}", file=sys.stderr)
        sys.exit(1)
    except httpx.RequestError as e:
        print(f"Error: could not reach {args.base_url}: {e}", file=sys.stderr)
        sys.exit(1)

    if args.json:
        print(json.dumps(summary, indent=2))
    else:
        print(format_summary(summary))

    sys.exit(1 if summary["errors"] else 0)


if __name__ == "__main__":
    main()
