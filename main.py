#!/usr/bin/env python3
"""
Invoice Intake System - Main Entry Point.

Command-line interface over InvoiceIntakeService: upload documents, run
the OCR job queue, and perform review and maintenance operations.

Usage:
    python main.py upload facture.pdf scan.jpg --cabinet cab-1
    python main.py run-jobs --max-jobs 20
    python main.py status 5f0c1a2e-...
    python main.py validate 5f0c1a2e-... 7b9d3c4f-...
    python main.py retry 5f0c1a2e-...
    python main.py enhance
    python main.py resync-companies
    python main.py sweep --timeout 900
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import ConfigurationManager
from invoice_intake.service import InvoiceIntakeService
from invoice_intake.utils.exceptions import InvoiceIntakeError
from invoice_intake.utils.logger import get_logger, setup_logger_from_config


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        description="Invoice Intake System",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    Upload and process right away:
        python main.py upload facture.pdf

    Upload only, process later:
        python main.py upload ./scans/*.pdf --no-process
        python main.py run-jobs --max-jobs 50
        """
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to custom configuration file"
    )
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="SQLAlchemy database URL (default: database.url)"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    commands = parser.add_subparsers(dest="command", required=True)

    upload = commands.add_parser("upload", help="Store documents and enqueue OCR")
    upload.add_argument("files", nargs="+", help="Invoice files (PDF or image)")
    upload.add_argument("--cabinet", default=None, help="Owning cabinet id")
    upload.add_argument(
        "--no-process",
        action="store_true",
        help="Only enqueue; do not run a batch after uploading"
    )

    run_jobs = commands.add_parser("run-jobs", help="Process queued OCR jobs")
    run_jobs.add_argument("--max-jobs", type=int, default=None, help="Jobs to process (1-50)")

    enqueue = commands.add_parser("enqueue", help="Enqueue OCR for an existing invoice")
    enqueue.add_argument("invoice_id")
    enqueue.add_argument("--priority", type=int, default=0, help="Higher is served first")

    retry = commands.add_parser("retry", help="Re-enqueue an invoice in ERROR")
    retry.add_argument("invoice_id")

    status = commands.add_parser("status", help="Show the status of an invoice")
    status.add_argument("invoice_id")

    validate = commands.add_parser("validate", help="Validate reviewed invoices")
    validate.add_argument("invoice_ids", nargs="+")

    commands.add_parser("enhance", help="Backfill empty fields from stored OCR text")
    commands.add_parser("resync-companies", help="Re-run company classification")

    sweep = commands.add_parser("sweep", help="Recover jobs with expired leases")
    sweep.add_argument("--timeout", type=int, default=None, help="Lease age limit in seconds")

    return parser.parse_args(argv)


def run_command(service: InvoiceIntakeService, args: argparse.Namespace) -> dict:
    """
    Dispatch one sub-command to the service.

    Returns:
        JSON-serializable result printed by main().
    """
    if args.command == "upload":
        uploaded = []
        for file_name in args.files:
            path = Path(file_name)
            invoice = service.upload(
                path.read_bytes(),
                path.name,
                cabinet_id=args.cabinet,
                process_now=False,
            )
            uploaded.append({'id': invoice.id, 'file': path.name})
        result = {'uploaded': uploaded, 'processed': 0}
        if not args.no_process:
            try:
                result['processed'] = service.run_jobs(len(uploaded))
            except InvoiceIntakeError as e:
                # Uploads are stored and queued; a later run-jobs picks them up.
                result['processing_error'] = str(e)
        return result

    if args.command == "run-jobs":
        return {'processed': service.run_jobs(args.max_jobs)}

    if args.command == "enqueue":
        return {'job_id': service.enqueue(args.invoice_id, args.priority)}

    if args.command == "retry":
        return {'job_id': service.retry(args.invoice_id)}

    if args.command == "status":
        return service.get_status(args.invoice_id)

    if args.command == "validate":
        return service.validate(args.invoice_ids)

    if args.command == "enhance":
        return {'updated': service.enhance()}

    if args.command == "resync-companies":
        return {'changes': service.resync_companies()}

    if args.command == "sweep":
        return service.sweep_expired_leases(args.timeout)

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function - entry point for command-line execution.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    try:
        args = parse_arguments(argv)

        if args.config:
            ConfigurationManager.reset()
        ConfigurationManager(args.config)
        setup_logger_from_config(level="DEBUG" if args.debug else None)
        logger = get_logger(__name__)

        service = InvoiceIntakeService.from_config(args.database_url)
        result = run_command(service, args)

        print(json.dumps(result, indent=2, default=str))
        logger.debug(f"Command {args.command} finished")
        return 0

    except InvoiceIntakeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
