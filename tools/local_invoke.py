#!/usr/bin/env python3
"""Run one message API request through the Lambda handler from a workstation.

Builds an API Gateway v2 proxy event from the command-line flags, invokes
`lambda_handler` in-process against the real bucket, and prints the response.

Examples:
    tools/local_invoke.py --bucket my-bucket get --filename file1
    tools/local_invoke.py --bucket my-bucket add --filename file1 \\
        --sender A --receiver B --message hi --date 2024-01-01
"""

from __future__ import annotations

import argparse
import importlib
import json
import os
import pathlib
import sys
from typing import Any, Dict, List, Optional


REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
LAMBDA_DIR = REPO_ROOT / "backend" / "lambda" / "message_api"

ACTIONS = ("get", "add", "update", "delete")


def _log(tag: str, message: str) -> None:
    print(f"[{tag}] {message}", file=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Invoke the message collection API handler locally.",
    )
    parser.add_argument("--bucket", default=os.environ.get("S3_BUCKET_NAME", ""))
    parser.add_argument("--region", default=os.environ.get("S3_REGION", ""))
    parser.add_argument("--mode", choices=("canonical", "legacy"), default=None)
    parser.add_argument("--conditional-writes", action="store_true")
    parser.add_argument("action", choices=ACTIONS)
    parser.add_argument("--filename", required=True)
    parser.add_argument("--sender", default="")
    parser.add_argument("--receiver", default="")
    parser.add_argument("--message", default="")
    parser.add_argument("--date", default="")
    parser.add_argument("--id", type=int, default=None)
    return parser


def build_event(args: argparse.Namespace) -> Dict[str, Any]:
    request: Dict[str, Any] = {"action": args.action, "filename": args.filename}
    for name in ("sender", "receiver", "message", "date"):
        value = getattr(args, name)
        if value:
            request[name] = value
    if args.id is not None:
        request["id"] = args.id
    return {
        "requestContext": {"http": {"method": "POST", "path": "/"}},
        "rawPath": "/",
        "headers": {"content-type": "application/json"},
        "body": json.dumps(request),
        "isBase64Encoded": False,
    }


def _apply_env(args: argparse.Namespace) -> None:
    os.environ["S3_BUCKET_NAME"] = args.bucket
    if args.region:
        os.environ["S3_REGION"] = args.region
    if args.mode:
        os.environ["MESSAGE_API_MODE"] = args.mode
    if args.conditional_writes:
        os.environ["S3_CONDITIONAL_WRITES"] = "true"


def _load_handler():
    if str(LAMBDA_DIR) not in sys.path:
        sys.path.insert(0, str(LAMBDA_DIR))
    return importlib.import_module("lambda_function").lambda_handler


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if not args.bucket.strip():
        _log("ERROR", "S3_BUCKET_NAME not set (use --bucket or the environment)")
        return 2

    # Config is read at import, so the environment must be final first.
    _apply_env(args)
    handler = _load_handler()

    resp = handler(build_event(args), None)
    status = int(resp.get("statusCode", 500))
    try:
        body = json.loads(resp.get("body") or "null")
    except json.JSONDecodeError:
        body = resp.get("body")

    _log("INFO" if status < 400 else "ERROR", f"status={status}")
    print(json.dumps(body, indent=2))
    return 0 if 200 <= status < 300 else 1


if __name__ == "__main__":
    raise SystemExit(main())
