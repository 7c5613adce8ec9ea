"""
Manage Company Mapper groups from the command line.

Usage:
  python scripts/manage_groups.py list
  python scripts/manage_groups.py import scraped.json --name "ENGIE" [--private]
  python scripts/manage_groups.py delete --name "Saur" [--yes]
  python scripts/manage_groups.py delete --id saur-m3x9k2
  python scripts/manage_groups.py stats saur-m3x9k2
  python scripts/manage_groups.py export saur-m3x9k2 -o saur.csv

Reads the same settings as the API (COMPANY_MAPPER_ENV, DATA_DIR, ...),
so STORAGE_BACKEND must be "file" for changes to persist.
"""
import argparse
import json
import sys

from company_mapper.classification import build_classifier
from company_mapper.config import configure_logging, get_settings
from company_mapper.errors import InvalidInputError
from company_mapper.export import export_to_csv
from company_mapper.storage import build_store, validate_company_data
from company_mapper.tree import calculate_stats


def _classifier():
    settings = get_settings()
    return build_classifier(settings.CLASSIFICATION_TABLE_PATH, settings.HOME_COUNTRY,
                            settings.HOME_COUNTRY_CODE)


def cmd_list(store, args):
    groups = store.list_groups()
    if not groups:
        print("No groups found")
        return 0
    for g in groups:
        visibility = "public " if g.is_public else "private"
        print(f"{g.id:<40} {visibility}  {g.name}  (created {g.created_at:%Y-%m-%d %H:%M})")
    return 0


def cmd_import(store, args):
    settings = get_settings()
    with open(args.file, encoding="utf-8") as f:
        raw = json.load(f)
    try:
        data = validate_company_data(raw, settings.MAX_TREE_DEPTH)
    except InvalidInputError as e:
        print(f"❌  {args.file}: {e}")
        return 1
    meta = store.create_group(
        args.name,
        data,
        description=args.description,
        is_public=not args.private,
    )
    print(f"✅  Created group {meta.id} ({meta.name})")
    return 0


def cmd_delete(store, args):
    if args.id:
        targets = [g for g in store.list_groups() if g.id == args.id]
    else:
        targets = [g for g in store.list_groups() if g.name == args.name]

    if not targets:
        print("No matching group found")
        return 1

    print(f"Groups to delete: {len(targets)}")
    for i, g in enumerate(targets, 1):
        print(f"{i}. ID: {g.id}, Name: {g.name}, Created: {g.created_at:%Y-%m-%d %H:%M}")

    if not args.yes:
        answer = input("Delete these groups and their tags/comments? (y/N): ")
        if answer.lower() != "y":
            print("Cancelled")
            return 0

    for g in targets:
        store.delete_group(g.id)
        print(f"✅  Deleted {g.id}")
    return 0


def cmd_stats(store, args):
    group = store.get_group(args.group_id)
    if group is None:
        print(f"❌  Group not found: {args.group_id}")
        return 1
    stats = calculate_stats(group.data.company, _classifier())
    print(f"{group.metadata.name}: {stats.total_companies} companies, max depth {stats.max_depth}")
    print(f"  with website:   {stats.companies_with_website}")
    print(f"  international:  {stats.international_companies}")
    for depth, count in stats.depth_distribution():
        print(f"  depth {depth}: {count}")
    for sector, count in sorted(stats.companies_by_sector.items(), key=lambda kv: -kv[1])[:8]:
        print(f"  {sector}: {count}")
    return 0


def cmd_export(store, args):
    group = store.get_group(args.group_id)
    if group is None:
        print(f"❌  Group not found: {args.group_id}")
        return 1
    csv_text = export_to_csv(
        group.data.company,
        tags=store.get_tags(args.group_id),
        comments=store.get_comments(args.group_id),
        classifier=_classifier(),
    )
    if args.output:
        with open(args.output, "w", encoding="utf-8", newline="") as f:
            f.write(csv_text)
        print(f"✅  Wrote {args.output}")
    else:
        sys.stdout.write(csv_text)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage Company Mapper groups")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="List all groups")

    p = sub.add_parser("import", help="Create a group from a scraper JSON file")
    p.add_argument("file")
    p.add_argument("--name", required=True)
    p.add_argument("--description", default="")
    p.add_argument("--private", action="store_true", help="Hide the group from the public viewer")

    p = sub.add_parser("delete", help="Delete groups by id or by exact name")
    target = p.add_mutually_exclusive_group(required=True)
    target.add_argument("--id")
    target.add_argument("--name")
    p.add_argument("--yes", action="store_true", help="Do not ask for confirmation")

    p = sub.add_parser("stats", help="Print dashboard stats for a group")
    p.add_argument("group_id")

    p = sub.add_parser("export", help="Export a group as CSV")
    p.add_argument("group_id")
    p.add_argument("-o", "--output")

    return parser


COMMANDS = {
    "list": cmd_list,
    "import": cmd_import,
    "delete": cmd_delete,
    "stats": cmd_stats,
    "export": cmd_export,
}


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)
    store = build_store(settings)
    return COMMANDS[args.command](store, args)


if __name__ == "__main__":
    sys.exit(main())
