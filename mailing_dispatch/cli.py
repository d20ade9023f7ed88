"""Command line interface for building a campaign distribution from an upload."""
from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Optional

from .config import ConfigurationError, load_settings
from .distribution import DistributionError, assign_contacts, plan_distribution
from .ingestion import IngestionError, analyze_file, export_contacts, normalize_contacts, sanitize_mapping
from .ingestion.exporters import plan_summary_dataframe
from .models import EXTRA_FIELDS, AgentRef, AllocationStrategy, DistributionMode


def build_parser(prog: Optional[str] = None) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=prog,
        description="Normalise an uploaded lead file and distribute its contacts between agents",
    )
    parser.add_argument("input", help="Path to the uploaded lead file (CSV, TXT or Excel)")
    parser.add_argument("output", help="Path where the contact assignment should be written (CSV or XLSX)")
    parser.add_argument(
        "--agent",
        dest="agents",
        action="append",
        required=True,
        metavar="ID[:NAME[:EXTENSION]]",
        help="Agent receiving contacts; repeat for several agents",
    )
    parser.add_argument(
        "--mode",
        choices=[mode.value for mode in DistributionMode],
        default=None,
        help="Distribution mode (defaults to single for one agent, multiple otherwise)",
    )
    parser.add_argument(
        "--manual",
        action="append",
        default=[],
        metavar="ID=QUANTITY",
        help="Manual quantity for an agent; switches multiple mode to manual allocation",
    )
    parser.add_argument("--add-country-code", action="store_true", help="Prefix local numbers with the country code")
    parser.add_argument("--name-column", type=int, default=None, help="Zero-based column holding the contact name")
    parser.add_argument("--phone-column", type=int, default=None, help="Zero-based column holding the phone number")
    parser.add_argument(
        "--extra-column",
        type=int,
        action="append",
        default=[],
        help="Zero-based column copied into the contact extras (up to three)",
    )
    parser.add_argument("--config", default=None, help="Optional configuration file (YAML or JSON)")
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (e.g. DEBUG, INFO, WARNING)",
    )
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def parse_agent(value: str) -> AgentRef:
    parts = value.split(":", 2)
    agent_id = parts[0].strip()
    if not agent_id:
        raise argparse.ArgumentTypeError(f"Invalid agent '{value}'")
    display_name = parts[1].strip() if len(parts) > 1 else ""
    extension = parts[2].strip() if len(parts) > 2 else ""
    return AgentRef(id=agent_id, display_name=display_name, extension=extension)


def parse_manual(values: List[str]) -> Dict[str, int]:
    quantities: Dict[str, int] = {}
    for value in values:
        agent_id, sep, quantity = value.partition("=")
        if not sep or not agent_id.strip():
            raise argparse.ArgumentTypeError(f"Invalid manual quantity '{value}', expected ID=QUANTITY")
        try:
            quantities[agent_id.strip()] = int(quantity)
        except ValueError as exc:
            raise argparse.ArgumentTypeError(f"Quantity in '{value}' is not an integer") from exc
    return quantities


def main(argv: list[str] | None = None, *, prog: Optional[str] = None) -> int:
    args = build_parser(prog).parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))

    try:
        agents = [parse_agent(value) for value in args.agents]
        manual = parse_manual(args.manual)
    except argparse.ArgumentTypeError as exc:
        logging.error("%s", exc)
        return 2

    try:
        settings = load_settings(args.config)
        input_path = Path(args.input)
        analysis = analyze_file(input_path.read_bytes(), filename=input_path.name, settings=settings.ingestion)
        table = analysis.table

        mapping = analysis.mapping
        overrides = {}
        if args.name_column is not None:
            overrides["name"] = args.name_column
        if args.phone_column is not None:
            overrides["phone"] = args.phone_column
        for field_name, column in zip(EXTRA_FIELDS, args.extra_column):
            overrides[field_name] = column
        mapping = sanitize_mapping(replace(mapping, **overrides), table.column_count)

        contacts = normalize_contacts(
            table.body_rows,
            mapping,
            args.add_country_code,
            table.headers,
            settings=settings.ingestion,
        )
        mode = DistributionMode(args.mode) if args.mode else (
            DistributionMode.SINGLE if len(agents) == 1 else DistributionMode.MULTIPLE
        )
        strategy = AllocationStrategy.MANUAL if manual else AllocationStrategy.AUTOMATIC
        plan = plan_distribution(
            len(contacts),
            mode,
            agents,
            strategy,
            manual or None,
            ceiling=settings.distribution.contact_ceiling,
        )
        output_path = export_contacts(
            contacts,
            args.output,
            plan=plan,
            headers=table.headers,
            mapping=mapping,
            assigned_only=True,
        )
    except (ConfigurationError, IngestionError, DistributionError, OSError) as exc:
        logging.error("%s", exc)
        return 1
    except ValueError as exc:
        # unsupported output suffix
        logging.error("Could not write %s: %s", args.output, exc)
        return 1

    for row in plan_summary_dataframe(plan).itertuples(index=False):
        logging.info("%s: %s contacts (%s)", row.agent, row.quantity, row.ranges)
    logging.info(
        "Assigned %s of %s contacts to %s agents",
        len(assign_contacts(contacts, plan)),
        len(contacts),
        len(plan.allocations),
    )
    logging.info("Assignment written to %s", output_path.resolve())
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
