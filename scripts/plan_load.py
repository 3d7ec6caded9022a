import argparse
import json
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from services.item_importer import ItemImporter  # noqa: E402
from services.layout_calculator import calculate_layout  # noqa: E402
from services.section_splitter import plan_articulated_load  # noqa: E402


def build_vehicle(args):
    return {
        "type": args.vehicle_type,
        "length": args.length,
        "front_section_length": args.front_length,
        "rear_section_length": args.rear_length,
        "max_weight": args.max_weight,
        "front_max_weight": args.front_max_weight,
        "rear_max_weight": args.rear_max_weight,
    }


def format_fragment(fragment):
    position = fragment.get("grid_position")
    where = (
        f"F{position['floor']} R{position['row']} C{position['column']}"
        if position
        else "DOES NOT FIT"
    )
    name = fragment.get("product_name") or fragment.get("product_id")
    return f"{where:<14} {name:<30} {fragment['quantity']:>5} x {fragment.get('length') or 0:.2f} m"


def print_result(result, label):
    print(f"== {label} (row length {result['max_row_length']:.2f} m, {result['columns']} columns)")
    for fragment in result["fragments"]:
        print("  " + format_fragment(fragment))
    for warning in result["warnings"]:
        print(f"  ! {warning['code']}: {warning['message']}")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Plan a beam load from a CSV or Excel manifest.")
    parser.add_argument("manifest", help="CSV or Excel file with product_id, quantity, length, weight")
    parser.add_argument("--vehicle-type", default="SINGLE", choices=["SINGLE", "ARTICULATED", "SEMI"])
    parser.add_argument("--length", type=float, default=0.0, help="Loading length in meters")
    parser.add_argument("--front-length", type=float, default=0.0)
    parser.add_argument("--rear-length", type=float, default=0.0)
    parser.add_argument("--max-weight", type=float, default=None, help="Capacity in kg")
    parser.add_argument("--front-max-weight", type=float, default=None)
    parser.add_argument("--rear-max-weight", type=float, default=None)
    parser.add_argument("--section", default="full", choices=["full", "front", "rear", "split"])
    parser.add_argument("--json", action="store_true", help="Print the raw result as JSON")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    with open(args.manifest, "rb") as handle:
        parsed = ItemImporter().parse_file(handle, filename=args.manifest)
    for invalid in parsed["invalid_rows"]:
        print(f"Skipping row {invalid['row']}: {invalid['reason']}", file=sys.stderr)

    vehicle = build_vehicle(args)
    if args.section == "split":
        result = plan_articulated_load(parsed["items"], vehicle)
    else:
        result = calculate_layout(parsed["items"], vehicle, args.section)

    if args.json:
        print(json.dumps(result, indent=2, default=str))
        return 0

    if args.section != "split":
        print_result(result, args.section)
        return 0
    for key in ("full", "front", "rear"):
        if key in result:
            print_result(result[key], key)
    for entry in result["not_placed"]:
        print(f"  ! {entry['reason']}: {entry['message']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
