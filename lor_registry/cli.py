"""
Command line client for the recommendation registry.

Runs the workflow engine against the configured store (see core.config) and
prints results; exits 1 when the registry rejects an operation.
"""

import argparse
import json
import sys

from .core.config import API_HOST, API_PORT, build_engine
from .core.errors import RegistryError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lor-registry", description="Letter-of-recommendation registry")
    parser.add_argument(
        "--caller",
        default="",
        help="Identity the operation is invoked on behalf of"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    add = subparsers.add_parser("add-student", help="Add a student and print the new id")
    add.add_argument("--name", required=True)
    add.add_argument("--email", required=True)
    add.add_argument("--course", required=True)

    authorize = subparsers.add_parser("authorize", help="Authorize an approver (owner only)")
    authorize.add_argument("identity")

    request = subparsers.add_parser("request", help="Request a recommendation for a student")
    request.add_argument("student_id", type=int)

    approve = subparsers.add_parser("approve", help="Approve a requested recommendation")
    approve.add_argument("student_id", type=int)

    show = subparsers.add_parser("show", help="Show a student record as JSON")
    show.add_argument("student_id", type=int)

    subparsers.add_parser("count", help="Print the number of students")

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=API_HOST)
    serve.add_argument("--port", type=int, default=API_PORT)

    return parser


def run(args, engine) -> int:
    """Execute a parsed command; returns the process exit status."""
    if args.command == "add-student":
        result = engine.add_student(args.caller, args.name, args.email, args.course)
        output = f"Student added with id {result.value}"
    elif args.command == "authorize":
        result = engine.authorize_approver(args.caller, args.identity)
        output = f"Authorized approver {args.identity}"
    elif args.command == "request":
        result = engine.request_recommendation(args.caller, args.student_id)
        output = f"Recommendation requested for student {args.student_id}"
    elif args.command == "approve":
        result = engine.approve_recommendation(args.caller, args.student_id)
        output = f"Recommendation approved for student {args.student_id}"
    elif args.command == "show":
        result = engine.get_student(args.student_id)
        output = json.dumps(result.value.to_dict(), indent=2) if result.ok else ""
    else:
        result = engine.student_count()
        output = str(result.value)

    if not result.ok:
        print(f"ERROR [{result.error_type}]: {result.error.message}", file=sys.stderr)
        return 1

    print(output)
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "serve":
        import uvicorn
        from .api.main import app
        uvicorn.run(app, host=args.host, port=args.port)
        return 0

    try:
        engine = build_engine()
    except RegistryError as e:
        print(f"ERROR [{e.error_type}]: {e.message}", file=sys.stderr)
        return 1

    return run(args, engine)


if __name__ == "__main__":
    sys.exit(main())
