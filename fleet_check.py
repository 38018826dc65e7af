#!/usr/bin/env python3
"""
CLI for vehicle usage compliance checks.

Commands:
  report     - Compliance score, risk level, alerts and recommendations
  gaps       - Mileage gaps between rentals with severity
  anomalies  - Odometer data-integrity anomalies
  insurance  - Claim approval likelihood and required documentation
  policies   - List usage categories and their gap tolerances
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from tabulate import tabulate
from typing import List, Optional

from compliance import (
    Alert,
    Anomaly,
    ComplianceError,
    EngineConfig,
    MileageGap,
    UsagePolicyTable,
    VehicleIntelligence,
    VehicleIntelligenceAggregator,
    estimate_insurance_impact,
    gaps_to_list,
    impact_to_dict,
    intelligence_to_dict,
    load_policy_document,
    load_usage_file,
)

# =============================================================================
# Formatting helpers
# =============================================================================


def format_miles(miles: Optional[float]) -> str:
    """Format mileage for display."""
    return f"{miles:,.0f}" if miles is not None else "-"


def format_percent(value: Optional[float]) -> str:
    """Format a 0-100 value as a percentage."""
    return f"{value:.0f}%" if value is not None else "-"


def truncate(text: Optional[str], max_len: int = 60) -> str:
    """Truncate text with ellipsis if too long."""
    if text is None:
        return "-"
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def make_gap_table(gaps: List[MileageGap]) -> List[List[str]]:
    """Convert mileage gaps to table rows."""
    return [
        [
            gap.from_booking_id,
            gap.to_booking_id,
            format_miles(gap.gap_miles),
            gap.severity.value,
            format_miles(gap.allowance_excess) if gap.allowance_excess else "-",
            truncate(gap.message),
        ]
        for gap in gaps
    ]


def make_anomaly_table(anomalies: List[Anomaly]) -> List[List[str]]:
    """Convert anomalies to table rows."""
    return [
        [a.kind.value, ", ".join(a.related_booking_ids), truncate(a.detail, 70)]
        for a in anomalies
    ]


def make_alert_table(alerts: List[Alert]) -> List[List[str]]:
    """Convert alerts to table rows."""
    return [
        [a.severity.value, a.category.value, a.title, a.action.value]
        for a in alerts
    ]


def print_header(intelligence: VehicleIntelligence) -> None:
    forensics = intelligence.forensics
    print(f"Vehicle: {intelligence.vehicle_id}")
    print(
        f"Usage: {intelligence.policy.display_name} "
        f"(max {format_miles(intelligence.policy.max_gap)} mi between trips, "
        f"policy v{intelligence.policy_version})"
    )
    print(f"Completed trips: {forensics.completed_trips}")
    if forensics.excluded_booking_ids:
        print(f"Excluded (missing readings): {len(forensics.excluded_booking_ids)}")
    print()


# =============================================================================
# Commands
# =============================================================================


def cmd_report(args, intelligence: VehicleIntelligence):
    """Compliance score, risk level, alerts and recommendations."""
    if args.json:
        print(json.dumps(intelligence_to_dict(intelligence), indent=2, sort_keys=True))
        return 0

    forensics = intelligence.forensics
    print_header(intelligence)
    print(
        f"Compliance score: {intelligence.compliance_score} "
        f"({intelligence.compliance.status.value})"
    )
    print(f"Risk level: {intelligence.risk_level.value}")
    print(
        f"Average gap: {format_miles(forensics.average_gap_size)} mi, "
        f"max gap: {format_miles(forensics.max_gap_size)} mi, "
        f"unauthorized: {format_miles(forensics.unauthorized_mileage)} mi"
    )
    print(f"Insurance ready: {'yes' if intelligence.readiness.ready else 'no'}")
    for issue in intelligence.readiness.issues:
        print(f"  - {issue}")
    print()

    if intelligence.alerts:
        print("ALERTS:")
        headers = ["Severity", "Category", "Alert", "Action"]
        print(
            tabulate(
                make_alert_table(list(intelligence.alerts)),
                headers=headers,
                tablefmt="simple",
            )
        )
        print()

    if intelligence.recommendations:
        print("RECOMMENDATIONS:")
        for i, text in enumerate(intelligence.recommendations, 1):
            print(f"  {i}. {text}")
        print()

    return 0


def cmd_gaps(args, intelligence: VehicleIntelligence):
    """Mileage gaps between rentals with severity."""
    gaps = list(intelligence.forensics.gaps)
    if args.flagged:
        gaps = [g for g in gaps if g.severity.is_flagged]

    if args.json:
        print(json.dumps(gaps_to_list(gaps), indent=2))
        return 0

    print_header(intelligence)
    if not gaps:
        print("No mileage gaps found.")
        return 0

    headers = ["From", "To", "Gap (mi)", "Severity", "Over (mi)", "Message"]
    print(tabulate(make_gap_table(gaps), headers=headers, tablefmt="simple"))
    return 0


def cmd_anomalies(args, intelligence: VehicleIntelligence):
    """Odometer data-integrity anomalies."""
    anomalies = list(intelligence.forensics.anomalies)

    if args.json:
        print(json.dumps(intelligence_to_dict(intelligence)["forensics"]["anomalies"], indent=2))
        return 0

    print_header(intelligence)
    if not anomalies:
        print("No anomalies detected.")
        return 0

    headers = ["Kind", "Bookings", "Detail"]
    print(tabulate(make_anomaly_table(anomalies), headers=headers, tablefmt="simple"))
    return 0


def cmd_insurance(args, intelligence: VehicleIntelligence):
    """Claim approval likelihood and required documentation."""
    impact = estimate_insurance_impact(intelligence)

    if args.json:
        print(json.dumps(impact_to_dict(impact), indent=2, sort_keys=True))
        return 0

    print_header(intelligence)
    print(f"Claim approval likelihood: {format_percent(impact.claim_approval_likelihood)}")
    print(f"Processing speed: {impact.processing_speed.value}")
    print()
    if impact.risk_factors:
        print("RISK FACTORS:")
        for factor in impact.risk_factors:
            print(f"  - {factor}")
        print()
    if impact.required_documentation:
        print("REQUIRED DOCUMENTATION:")
        for doc in impact.required_documentation:
            print(f"  - {doc}")
        print()
    return 0


def cmd_policies(args, table: UsagePolicyTable):
    """List usage categories and their gap tolerances."""
    print(f"Policy table version: {table.version}")
    print()
    rows = [
        [
            policy.category,
            policy.display_name,
            format_miles(policy.max_gap),
            format_miles(policy.warning_threshold),
            format_miles(policy.critical_threshold),
            truncate(policy.insurance_note, 50),
        ]
        for policy in table
    ]
    headers = ["Category", "Label", "Max Gap", "Warning", "Critical", "Insurance"]
    print(tabulate(rows, headers=headers, tablefmt="simple"))
    print()
    for policy in table:
        print(f"{policy.display_name}: {policy.description}")
        if policy.tax_note:
            print(f"  Tax: {policy.tax_note}")
    return 0


# =============================================================================
# Main
# =============================================================================


def add_vehicle_arguments(subparser: argparse.ArgumentParser) -> None:
    """Arguments shared by the commands that analyse a vehicle file."""
    subparser.add_argument(
        "vehicle_file",
        type=Path,
        help="Path to vehicle usage YAML file",
    )
    subparser.add_argument("--json", action="store_true", help="Output JSON")


def main():
    parser = argparse.ArgumentParser(
        description="Vehicle usage compliance and mileage forensics",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s report vehicles/sample-rental.yaml
  %(prog)s report vehicles/sample-rental.yaml --json
  %(prog)s gaps vehicles/sample-rental.yaml --flagged
  %(prog)s anomalies vehicles/sample-rental.yaml
  %(prog)s insurance vehicles/sample-rental.yaml
  %(prog)s --policies custom.yaml policies
""",
    )
    parser.add_argument(
        "--policies",
        type=Path,
        help="Usage policy YAML file (default: bundled policy table)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log engine details to stderr",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    report_parser = subparsers.add_parser(
        "report", help="Compliance score, risk level, alerts and recommendations"
    )
    add_vehicle_arguments(report_parser)

    gaps_parser = subparsers.add_parser("gaps", help="Mileage gaps between rentals")
    add_vehicle_arguments(gaps_parser)
    gaps_parser.add_argument(
        "--flagged",
        action="store_true",
        help="Only show gaps above the usage allowance",
    )

    anomalies_parser = subparsers.add_parser(
        "anomalies", help="Odometer data-integrity anomalies"
    )
    add_vehicle_arguments(anomalies_parser)

    insurance_parser = subparsers.add_parser(
        "insurance", help="Claim approval likelihood and required documentation"
    )
    add_vehicle_arguments(insurance_parser)

    subparsers.add_parser("policies", help="List usage categories and tolerances")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        # One read of the policy document feeds both the table and the tunables
        document = load_policy_document(args.policies)
        table = UsagePolicyTable.from_dict(document)

        if args.command == "policies":
            return cmd_policies(args, table)

        # Validate vehicle file exists
        if not args.vehicle_file.exists():
            print(f"Error: File not found: {args.vehicle_file}")
            return 1

        config = EngineConfig.from_dict(document.get("engine"))
        vehicle, bookings = load_usage_file(args.vehicle_file)
        intelligence = VehicleIntelligenceAggregator(table, config).build(
            vehicle, bookings
        )
    except ComplianceError as e:
        print(f"Error: {e}")
        return 1

    # Dispatch to command handler
    if args.command == "report":
        return cmd_report(args, intelligence)
    elif args.command == "gaps":
        return cmd_gaps(args, intelligence)
    elif args.command == "anomalies":
        return cmd_anomalies(args, intelligence)
    elif args.command == "insurance":
        return cmd_insurance(args, intelligence)

    return 0


if __name__ == "__main__":
    sys.exit(main() or 0)
