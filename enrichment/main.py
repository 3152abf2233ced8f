"""Main entry point for the enrichment engine"""

import argparse
import json
import sys
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables FIRST, before any other imports
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(dotenv_path=env_path)

from enrichment.models.transaction import EnrichmentRequest
from enrichment.orchestrator.enrichment_orchestrator import EnrichmentOrchestrator
from enrichment.storage.backends import check_storage_health
from enrichment.utils.config_loader import load_config
from enrichment.utils.errors import EnrichmentSystemError, InvalidIdentifierError
from enrichment.utils.logging import get_logger

logger = get_logger(__name__)


def load_requests(path: str):
    """
    Read one request object, or a list of them, from a JSON file.

    Returns:
        (requests, is_batch)
    """
    with open(path, 'r') as f:
        payload = json.load(f)

    if isinstance(payload, list):
        return [EnrichmentRequest.model_validate(item) for item in payload], True
    return [EnrichmentRequest.model_validate(payload)], False


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Transaction enrichment engine")
    parser.add_argument("--config", default=None, help="Path to YAML config (default: config/enrichment.yaml)")
    sub = parser.add_subparsers(dest="command", required=True)

    enrich = sub.add_parser("enrich", help="Enrich a request (object) or batch (list) from a JSON file")
    enrich.add_argument("file")

    get = sub.add_parser("get", help="Look up a previous request by id")
    get.add_argument("request_id")

    sub.add_parser("health", help="Check provider and storage connectivity")
    return parser


def report_error(error: EnrichmentSystemError) -> int:
    """Print an engine error as JSON; returns the exit code"""
    code = "invalid_request_id" if isinstance(error, InvalidIdentifierError) else "internal_error"
    logger.error("Command failed", error=str(error), error_type=type(error).__name__)
    print(json.dumps({"error": code, "message": str(error)}))
    return 1


def main(argv=None):
    """Main entry point"""
    args = build_parser().parse_args(argv)
    try:
        config = load_config(args.config)
        orchestrator = EnrichmentOrchestrator.from_config(config)
    except EnrichmentSystemError as e:
        return report_error(e)

    try:
        if args.command == "enrich":
            requests, is_batch = load_requests(args.file)
            if is_batch:
                results = orchestrator.enrich_many(requests)
                output = [r.model_dump(mode="json") for r in results]
            else:
                output = orchestrator.enrich_one(requests[0]).model_dump(mode="json")

        elif args.command == "get":
            result = orchestrator.get_by_id(args.request_id)
            if result is None:
                logger.warning("Enrichment record not found", request_id=args.request_id)
                print(json.dumps({"error": "not_found", "request_id": args.request_id}))
                return 1
            output = result.model_dump(mode="json")

        else:
            output = {
                "provider": orchestrator.provider.health_check(),
                "storage": check_storage_health(orchestrator.audit_store.backend),
                "circuit_breaker": orchestrator.provider.circuit_breaker.metrics(),
            }

        print(json.dumps(output, indent=2))
        return 0

    except EnrichmentSystemError as e:
        return report_error(e)

    finally:
        orchestrator.provider.close()


if __name__ == "__main__":
    sys.exit(main())
