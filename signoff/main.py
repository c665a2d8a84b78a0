"""Command line entry point: process a signed PDF or work the review queue."""

import argparse
import json
import sys
from collections.abc import Sequence
from dataclasses import asdict
from pathlib import Path

from signoff.config.settings import Settings
from signoff.database.connection import close_pool, init_pool
from signoff.logging.logger import Log
from signoff.reconciliation.exceptions import ReconciliationError
from signoff.reconciliation.models import (
    PipelineInput,
    ReviewResolution,
    SourceMetadata,
    SourceTag,
)
from signoff.reconciliation.processor import build_processor, build_review_queue


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="signoff", description=__doc__)
    sub = parser.add_subparsers(dest="command", required=True)

    process = sub.add_parser("process", help="Reconcile one signed PDF")
    process.add_argument("pdf", type=Path, help="Path to the signed PDF")
    process.add_argument("--sender", required=True, help="Sender key (issuer profile)")
    process.add_argument("--page", type=int, default=1, help="1-based page index")
    process.add_argument("--identifier", help="Manual work order number override")
    process.add_argument("--reason", help="Why the override was supplied")
    process.add_argument(
        "--source",
        choices=[tag.value for tag in SourceTag],
        default=SourceTag.UPLOAD.value,
    )
    process.add_argument("--message-id")
    process.add_argument("--sender-address")
    process.add_argument("--subject")
    process.add_argument("--date")

    resolve = sub.add_parser("resolve", help="Resolve a review item with a final identifier")
    resolve.add_argument("review_item_id", type=int)
    resolve.add_argument("--sender", required=True)
    resolve.add_argument("--identifier", required=True)
    resolve.add_argument("--note")

    listing = sub.add_parser("list-review", help="List unresolved review items, oldest first")
    listing.add_argument("--sender")
    listing.add_argument("--limit", type=int, default=50)
    listing.add_argument("--offset", type=int, default=0)
    return parser


def _print_json(payload: object) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _run(args: argparse.Namespace, settings: Settings) -> None:
    if args.command == "process":
        pipeline_input = PipelineInput(
            document_bytes=args.pdf.read_bytes(),
            filename=args.pdf.name,
            page_index=args.page,
            sender_key=args.sender,
            manual_identifier=args.identifier,
            manual_reason=args.reason,
            source_tag=SourceTag(args.source),
            source_metadata=SourceMetadata(
                message_id=args.message_id,
                sender_address=args.sender_address,
                subject=args.subject,
                date=args.date,
            ),
        )
        _print_json(build_processor(settings).process(pipeline_input).to_dict())
    elif args.command == "resolve":
        resolution = ReviewResolution(
            review_item_id=args.review_item_id,
            sender_key=args.sender,
            identifier=args.identifier,
            note=args.note,
        )
        _print_json(build_review_queue(settings).resolve(resolution).to_dict())
    else:
        items = build_review_queue(settings).list_unresolved(
            args.sender, limit=args.limit, offset=args.offset
        )
        _print_json([asdict(item) for item in items])


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point: parse args -> initialize pools -> run the command."""
    args = build_parser().parse_args(argv)
    settings = Settings()
    Log.configure(settings.log_level)
    init_pool(settings)
    try:
        _run(args, settings)
    except ReconciliationError as exc:
        Log.error("Command rejected", command=args.command, error=str(exc))
        print(f"error: {exc}", file=sys.stderr)
        return 2
    finally:
        close_pool()
    return 0


if __name__ == "__main__":
    sys.exit(main())
