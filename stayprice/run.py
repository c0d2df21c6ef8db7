import argparse
import json
import logging
import sys

logging.getLogger("stayprice").setLevel(logging.WARNING)

# We import the interpreter registry and the engine:
from stayprice.interpreter.registry import INTERPRETERS
from stayprice.interpreter.plan_extractor import extract_plans
from stayprice.engine.match_engine import match_stay
from stayprice.engine.stay import build_stay_request, parse_occupancy_spec, PROTOCOL_VERSIONS
from stayprice.errors import InputError, StaypriceError
from stayprice.trace import TraceCollector
from stayprice.utilities.tree import load_document

########################################################
#   OCCUPANCY ARGUMENTS
########################################################

def occupancy_rows(values):
    """
    Each -i occurrence is either five tokens (CODE MIN STD MAX MAXCHILD)
    or one compact token CODE:MIN:STD:MAX[:MAXCHILD].
    """
    rows = []
    for tokens in values or []:
        if len(tokens) == 1:
            rows.append(parse_occupancy_spec(tokens[0]))
        elif len(tokens) == 5:
            rows.append(tuple(tokens))
        else:
            raise InputError(
                f"[run] -i expects CODE MIN STD MAX MAXCHILD or CODE:MIN:STD:MAX[:MAXCHILD], got {' '.join(tokens)}"
            )
    return rows

########################################################
#   "do_price"
########################################################

def do_price(args):
    root = load_document(args.rateplans)
    stay = build_stay_request(
        arrival=args.arrival,
        departure=args.departure,
        num_adults=args.adults,
        children_ages=args.children or [],
        booking_date=args.booking_date,
        occupancy=occupancy_rows(args.occupancy),
        protocol_version=args.protocol_version,
    )

    trace = TraceCollector()
    plans = extract_plans(root, trace)
    result = match_stay(plans, stay, trace)

    text = trace.render(args.verbose)
    if text:
        print(text, end="")

    print(json.dumps(result.to_dict(), indent=2))

    if args.json_out:
        with open(args.json_out, "w", encoding="utf-8") as f:
            json.dump(result.to_dict(), f, indent=2)
        print(f"[Price] Result written to {args.json_out}")
    return result

########################################################
#   "do_validate"
########################################################

def do_validate(args):
    root = load_document(args.rateplans)
    trace = TraceCollector()
    plans = extract_plans(root, trace)
    print(trace.validation_text(), end="")
    print(f"[Validate] {len(plans)} RatePlan element(s) are valid.")
    return plans

########################################################
#   MAIN CLI
########################################################

def build_arg_parser():
    parser = argparse.ArgumentParser(
        prog="stayprice",
        description="Stayprice CLI: price a stay against a rate plans document, validate documents, list interpreters."
    )
    parser.add_argument("--debug", action="store_true", help="Enable DEBUG logging.")
    subparsers = parser.add_subparsers(dest="command", help="Top-level commands")

    list_parser = subparsers.add_parser("list", help="List functionality.")
    list_sub = list_parser.add_subparsers(dest="list_command")
    list_sub.add_parser("interpreters", help="List all registered RatePlan section interpreters.")

    price_parser = subparsers.add_parser("price", help="Compute the price of a stay.")
    price_parser.add_argument("-r", "--rateplans", required=True,
                              help="Path to the rate plans document (.xml, or xml2js-shaped .json).")
    price_parser.add_argument("-i", "--occupancy", action="append", nargs="+", metavar="SPEC",
                              help="Inventory occupancy: CODE MIN STD MAX MAXCHILD, or CODE:MIN:STD:MAX[:MAXCHILD]. "
                                   "MAXCHILD may be 'undefined'. Repeat for each room type.")
    price_parser.add_argument("-a", "--arrival", required=True, help="Arrival date (YYYY-MM-DD).")
    price_parser.add_argument("-d", "--departure", required=True, help="Departure date (YYYY-MM-DD).")
    price_parser.add_argument("-n", "--adults", required=True, help="Number of adults.")
    price_parser.add_argument("-c", "--children", nargs="*", metavar="AGE", help="Children's ages.")
    price_parser.add_argument("-b", "--booking-date", default=None, help="Booking date (default: today).")
    price_parser.add_argument("-p", "--protocol-version", default=None, choices=PROTOCOL_VERSIONS,
                              help="Protocol version (default: 2017-10).")
    price_parser.add_argument("-v", "--verbose", action="count", default=0,
                              help="-v prints the matching trace, -vv also the validation trace.")
    price_parser.add_argument("--json-out", default=None, help="Also write the result mapping to this JSON file.")

    validate_parser = subparsers.add_parser("validate", help="Validate a rate plans document only.")
    validate_parser.add_argument("-r", "--rateplans", required=True,
                                 help="Path to the rate plans document (.xml, or xml2js-shaped .json).")
    return parser


def main_cli(argv=None):
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    if args.debug:
        logging.basicConfig(level=logging.DEBUG)
        logging.getLogger("stayprice").setLevel(logging.DEBUG)

    try:
        if args.command == "list":
            if args.list_command == "interpreters":
                list_interpreters()
            else:
                parser.print_help()

        elif args.command == "price":
            do_price(args)

        elif args.command == "validate":
            do_validate(args)

        else:
            parser.print_help()

    except StaypriceError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


def list_interpreters():
    if not INTERPRETERS:
        print("No registered interpreters.")
        return
    print("Registered interpreters:")
    for name in INTERPRETERS.keys():
        print(f" - {name}")


if __name__ == "__main__":
    sys.exit(main_cli())
