"""
main.py — Command-line entry point for the Internship Hunter.

Run events are printed to stdout as `data: {json}` lines so another process
can consume the stream; logs go to stderr and the log file.
"""

import argparse
import json
import logging
import sys

from config import validate_config
from exceptions import InternshipHunterError
from models import INTERNSHIP_FILTERS
from monitoring import get_logger, setup_logging

logger = get_logger("main")


def emit(payload: dict):
    print(f"data: {json.dumps(payload, ensure_ascii=False)}", flush=True)


def _print_json(payload):
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def build_pipeline():
    from pipeline import Pipeline

    return Pipeline()


def cmd_run(args) -> int:
    pipeline = build_pipeline()
    exit_code = 1
    try:
        for event in pipeline.run(args.preset):
            emit(event.to_dict())
            if event.is_terminal:
                exit_code = 0 if event.type == "complete" else 1
    finally:
        pipeline.registry.close()
    return exit_code


def cmd_retry(args) -> int:
    pipeline = build_pipeline()
    try:
        internship = pipeline.retry_enrichment(args.id)
    finally:
        pipeline.registry.close()
    _print_json({"success": True, "internship": internship.to_dict()})
    return 0


def cmd_list(args) -> int:
    from companies import internships_with_companies
    from storage import Storage

    _print_json(internships_with_companies(Storage(), args.filter))
    return 0


def cmd_seen(args) -> int:
    from storage import Storage

    seen = Storage().toggle_seen(args.id)
    _print_json({"success": True, "seen": seen})
    return 0


def cmd_delete(args) -> int:
    from storage import Storage

    Storage().delete_internship(args.id)
    _print_json({"success": True})
    return 0


def cmd_blacklist(args) -> int:
    from storage import Storage

    blacklisted = Storage().toggle_blacklist(args.company)
    _print_json({"success": True, "isBlacklisted": blacklisted})
    return 0


def cmd_presets(args) -> int:
    from storage import Storage

    storage = Storage()
    if args.presets_command == "save":
        storage.save_preset(args.name, args.urls)
    elif args.presets_command == "delete":
        storage.delete_preset(args.name)
    else:
        _print_json(storage.get_presets())
        return 0
    _print_json({"success": True})
    return 0


def cmd_companies(args) -> int:
    from ai_service import AIService
    from companies import add_company, list_companies, regenerate_analysis
    from storage import Storage

    storage = Storage()
    if args.companies_command == "add":
        record = add_company(storage, AIService(), args.name, args.location, args.about, args.website)
        _print_json({"success": True, "company": {"name": record.name, **record.to_dict()}})
    elif args.companies_command == "analyze":
        analysis = regenerate_analysis(storage, AIService(), args.name)
        _print_json({"success": analysis is not None, "analysis": analysis})
    else:
        _print_json(list_companies(storage))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="internship-hunter", description=__doc__.strip().splitlines()[0])
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Fetch, enrich and store new internships")
    run.add_argument("--preset", help="Fetch only the URLs of this saved preset")
    run.set_defaults(func=cmd_run)

    retry = sub.add_parser("retry", help="Retry missing AI enrichment for one internship")
    retry.add_argument("id")
    retry.set_defaults(func=cmd_retry)

    list_cmd = sub.add_parser("list", help="List stored internships")
    list_cmd.add_argument("--filter", choices=INTERNSHIP_FILTERS, default="all")
    list_cmd.set_defaults(func=cmd_list)

    seen = sub.add_parser("seen", help="Toggle the seen flag of an internship")
    seen.add_argument("id")
    seen.set_defaults(func=cmd_seen)

    delete = sub.add_parser("delete", help="Delete a stored internship")
    delete.add_argument("id")
    delete.set_defaults(func=cmd_delete)

    blacklist = sub.add_parser("blacklist", help="Toggle a company on the blacklist")
    blacklist.add_argument("company")
    blacklist.set_defaults(func=cmd_blacklist)

    presets = sub.add_parser("presets", help="Manage URL presets")
    presets_sub = presets.add_subparsers(dest="presets_command")
    presets_sub.add_parser("list", help="Show saved presets")
    save = presets_sub.add_parser("save", help="Create or replace a preset")
    save.add_argument("name")
    save.add_argument("urls", nargs="+")
    remove = presets_sub.add_parser("delete", help="Delete a preset")
    remove.add_argument("name")
    presets.set_defaults(func=cmd_presets)

    companies = sub.add_parser("companies", help="Manage the company cache")
    companies_sub = companies.add_subparsers(dest="companies_command")
    companies_sub.add_parser("list", help="Show known companies")
    add = companies_sub.add_parser("add", help="Add or update a company and analyze it")
    add.add_argument("name")
    add.add_argument("--location", default="")
    add.add_argument("--about", default="")
    add.add_argument("--website")
    analyze = companies_sub.add_parser("analyze", help="Regenerate a company's analysis")
    analyze.add_argument("name")
    companies.set_defaults(func=cmd_companies)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    for warning in validate_config():
        logger.warning(f"Config: {warning}")

    try:
        return args.func(args)
    except InternshipHunterError as e:
        logger.error(f"{type(e).__name__}: {e}")
        _print_json({"success": False, "error": str(e)})
        return 1
    except ValueError as e:
        logger.error(f"Invalid input: {e}")
        _print_json({"success": False, "error": str(e)})
        return 2


if __name__ == "__main__":
    sys.exit(main())
