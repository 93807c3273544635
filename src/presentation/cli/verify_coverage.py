"""Check that the deletion manifest covers every user reference in the schema.

Run it in CI so a new table or column that points at a user cannot ship
without a deletion strategy.

Usage:
    verify-cascade-coverage
    verify-cascade-coverage --schema schema.json --manifest manifest.json

The identity table comes from the manifest; blob-name heuristics follow
APP_SCHEMA_BLOB_HEURISTICS.

Exit codes:
    0 - Manifest covers the schema
    1 - Coverage violations found, or the inputs could not be loaded
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence

from domain.exceptions import ConfigurationError
from domain.services.coverage_verifier import CoverageVerifier
from infrastructure.loaders.manifest_loader import load_manifest
from infrastructure.loaders.schema_loader import load_schema
from infrastructure.observability.logging_config import get_logger, setup_logging
from infrastructure.settings import get_settings

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="verify-cascade-coverage",
        description="Verify deletion manifest coverage against the data schema.",
    )
    parser.add_argument(
        "--schema",
        default=settings.schema_source,
        help="Schema source: a .json file or module:attribute (default: %(default)s)",
    )
    parser.add_argument(
        "--manifest",
        default=settings.manifest_source,
        help="Manifest source: a .json file or module:attribute (default: %(default)s)",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the coverage check.

    Returns:
        Exit code (0 when the manifest covers the schema, 1 otherwise).
    """
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)

    try:
        manifest = load_manifest(args.manifest)
        schema = load_schema(
            args.schema,
            identity_table=manifest.identity_table,
            blob_heuristics=settings.schema_blob_heuristics,
        )
    except ConfigurationError as exc:
        logger.error("coverage.load_failed", error=exc.detail)
        print(f"ERROR: {exc.detail}", file=sys.stderr)
        return 1

    report = CoverageVerifier(manifest).verify(schema)
    print(report.render())

    logger.info(
        "coverage.checked",
        passed=report.passed,
        violations=len(report.violations),
        schema=args.schema,
        manifest=args.manifest,
    )
    return 0 if report.passed else 1


if __name__ == "__main__":
    sys.exit(main())
