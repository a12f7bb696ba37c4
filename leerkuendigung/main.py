"""
Command-line entry point: fetch the Zurich eviction-notice dataset, run the
analyses and write a self-contained HTML report.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from .config import DEFAULT_CONFIG, DEFAULT_SEP
from .errors import DatasetLoadError, ValidationError
from .pipeline import run_pipeline
from .report import write_report

SOURCE_ENV_VAR = "LEERKUENDIGUNG_SOURCE"
DEFAULT_OUTPUT = "report.html"

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Analyse where persons affected by eviction notices due to "
            "refurbishment in the City of Zurich move, and write an HTML report."
        )
    )
    parser.add_argument(
        "--source",
        default=os.environ.get(SOURCE_ENV_VAR, DEFAULT_CONFIG.source),
        help=(
            "Path or URL to the OGD CSV "
            f"(default: ${SOURCE_ENV_VAR} or the City of Zurich download URL)."
        ),
    )
    parser.add_argument(
        "--sep",
        default=DEFAULT_SEP,
        help=f"Delimiter used in the source file (default: '{DEFAULT_SEP}').",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=Path(DEFAULT_OUTPUT),
        help=f"Where to write the HTML report (default: {DEFAULT_OUTPUT}).",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: INFO).",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = replace(DEFAULT_CONFIG, source=str(args.source), sep=args.sep)
    try:
        payload = run_pipeline(config=config)
    except (DatasetLoadError, ValidationError) as exc:
        logger.error("%s", exc)
        return 1

    write_report(payload, args.output, source=config.source, config=config)
    return 0


if __name__ == "__main__":
    sys.exit(main())
