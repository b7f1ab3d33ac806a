"""Command-line interface for the shift assignment engine."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime

from shiftmatch.config import load_config
from shiftmatch.domain.db import DEFAULT_DB_URL, get_session, get_session_factory, init_database
from shiftmatch.engine.orchestrator import AssignmentService, AssignOptions, EngineContext
from shiftmatch.io.import_csv import import_agents_csv, import_availability_csv, import_shifts_csv, import_sites_csv


def _service(args: argparse.Namespace) -> AssignmentService:
    cfg = load_config(args.config)
    return AssignmentService(EngineContext(session_factory=get_session_factory(args.db), cfg=cfg))


def _emit(payload) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _parse_time(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an ISO-8601 timestamp: {value}")


def _cmd_init_db(args: argparse.Namespace) -> None:
    """Initialize the database."""
    init_database(args.db)
    print(f"[OK] Database initialized: {args.db}")


def _cmd_import_csv(args: argparse.Namespace) -> None:
    """Import CSV data into database."""
    session = get_session(args.db)

    # Sites and agents first: shifts and windows reference them
    steps = [
        ("sites", args.sites, import_sites_csv),
        ("agents", args.agents, import_agents_csv),
        ("availability windows", args.availability, import_availability_csv),
        ("shifts", args.shifts, import_shifts_csv),
    ]
    try:
        for label, path, importer in steps:
            if path:
                count = importer(session, path)
                print(f"[OK] Imported {count} {label}")
        session.close()
        print("[OK] CSV import complete")

    except Exception as e:
        session.rollback()
        session.close()
        print(f"[ERROR] Import failed: {e}")
        raise


def _cmd_assign(args: argparse.Namespace) -> None:
    """Plan (and optionally commit) assignments for a batch of shifts."""
    service = _service(args)
    options = AssignOptions(
        optimization_goal=args.goal,
        allow_partial_assignment=not args.all_or_nothing,
        notify_agents=not args.no_notify,
        validate_constraints=not args.skip_validation,
    )
    plan = service.assign_shifts(args.shift_ids, options)
    _emit(plan.to_dict())

    if args.commit:
        if not plan.success:
            print("[ERROR] Plan was aborted; nothing committed")
            sys.exit(1)
        outcome = service.commit_plan(plan)
        print(f"[OK] Committed {outcome['committed']} assignments ({outcome['delivered']} notifications sent)")


def _cmd_recommend(args: argparse.Namespace) -> None:
    """Rank candidate agents for one shift."""
    recommendations = _service(args).get_recommendations(
        args.shift_id,
        limit=args.limit,
        include_unavailable=args.include_unavailable,
        optimization_goal=args.goal,
    )
    _emit(recommendations.to_dict())


def _cmd_optimize(args: argparse.Namespace) -> None:
    """Re-plan open shifts in a period."""
    service = _service(args)
    result = service.optimize_schedule(
        args.start,
        args.end,
        site_id=args.site,
        optimization_goal=args.goal,
        preserve_existing_assignments=not args.replan_assigned,
    )
    _emit(result.to_dict())
    if args.commit and result.plan.assignments:
        outcome = service.commit_plan(result.plan)
        print(f"[OK] Committed {outcome['committed']} assignments")


def _cmd_conflicts(args: argparse.Namespace) -> None:
    """List scheduling conflicts in a period."""
    conflicts = _service(args).detect_conflicts(args.start, args.end, site_id=args.site)
    _emit([c.to_dict() for c in conflicts])
    if conflicts:
        print(f"[WARN] {len(conflicts)} conflicts found", file=sys.stderr)


def _cmd_analytics(args: argparse.Namespace) -> None:
    """Summarize persisted assignment history."""
    _emit(_service(args).get_assignment_analytics(args.start, args.end, site_id=args.site))


def _add_goal(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--goal",
        default="balanced",
        choices=["balanced", "cost", "quality", "coverage"],
        help="Optimization goal (default: balanced)",
    )


def _add_period(p: argparse.ArgumentParser, required: bool = True) -> None:
    p.add_argument("--start", type=_parse_time, required=required, help="Period start (ISO-8601)")
    p.add_argument("--end", type=_parse_time, required=required, help="Period end (ISO-8601)")
    p.add_argument("--site", help="Restrict to one site id")


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="shiftmatch",
        description="Shift assignment and scheduling-conflict engine for field agents",
    )

    # Global options
    parser.add_argument("--db", default=DEFAULT_DB_URL, help=f"Database URL (default: {DEFAULT_DB_URL})")
    parser.add_argument("--config", help="Path to config YAML or JSON (default: built-in defaults)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    # init-db command
    init = sub.add_parser("init-db", help="Initialize database")
    init.set_defaults(func=_cmd_init_db)

    # import-csv command
    imp = sub.add_parser("import-csv", help="Import CSV data into database")
    imp.add_argument("--sites", help="Path to sites CSV")
    imp.add_argument("--agents", help="Path to agents CSV")
    imp.add_argument("--availability", help="Path to availability windows CSV")
    imp.add_argument("--shifts", help="Path to shifts CSV")
    imp.set_defaults(func=_cmd_import_csv)

    # assign command
    asg = sub.add_parser("assign", help="Plan assignments for a batch of shifts")
    asg.add_argument("shift_ids", nargs="+", help="Shift ids to staff")
    _add_goal(asg)
    asg.add_argument("--all-or-nothing", action="store_true", help="Abort the batch on the first failure")
    asg.add_argument("--skip-validation", action="store_true", help="Skip conflict pre/post checks")
    asg.add_argument("--no-notify", action="store_true", help="Do not notify agents on commit")
    asg.add_argument("--commit", action="store_true", help="Persist the plan")
    asg.set_defaults(func=_cmd_assign)

    # recommend command
    rec = sub.add_parser("recommend", help="Rank agents for one shift")
    rec.add_argument("shift_id", help="Shift id")
    rec.add_argument("--limit", type=int, default=10, help="Number of candidates (default: 10)")
    rec.add_argument("--include-unavailable", action="store_true", help="Also list infeasible agents with reasons")
    _add_goal(rec)
    rec.set_defaults(func=_cmd_recommend)

    # optimize command
    opt = sub.add_parser("optimize", help="Plan all open shifts in a period")
    _add_period(opt)
    _add_goal(opt)
    opt.add_argument("--replan-assigned", action="store_true", help="Also re-plan shifts that already have an agent")
    opt.add_argument("--commit", action="store_true", help="Persist the plan")
    opt.set_defaults(func=_cmd_optimize)

    # conflicts command
    con = sub.add_parser("conflicts", help="Detect scheduling conflicts in a period")
    _add_period(con)
    con.set_defaults(func=_cmd_conflicts)

    # analytics command
    ana = sub.add_parser("analytics", help="Assignment statistics")
    _add_period(ana, required=False)
    ana.set_defaults(func=_cmd_analytics)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        args.func(args)
    except (ValueError, LookupError) as e:
        print(f"[ERROR] {e}")
        sys.exit(2)


if __name__ == "__main__":
    main()
