"""
Story Writer - Main Entry Point

Commands:
    run    Process one failure event from a JSON file and print the Artifact
    serve  Start the HTTP API
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import uvicorn
from dotenv import load_dotenv
from pydantic import ValidationError

from storywriter.agents.orchestrator import PipelineOrchestrator
from storywriter.api.server import create_app
from storywriter.config.settings import BackendType, get_config
from storywriter.models.event import FailureEvent
from storywriter.observability.metrics import PipelineMetrics
from storywriter.providers.factory import create_backend
from storywriter.providers.github_models import MissingTokenError
from storywriter.utils.error_handling import PipelineFailure
from storywriter.utils.logging_context import setup_logging

logger = logging.getLogger("storywriter")

EXIT_OK = 0
EXIT_PIPELINE_FAILED = 1
EXIT_BAD_INPUT = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="storywriter",
        description="Turn test failures into bug reports, user stories and severity ratings",
    )
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ERROR (default: API_LOG_LEVEL)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Process one failure event")
    run_parser.add_argument("--event", required=True, type=Path, help="Path to a FailureEvent JSON file")
    run_parser.add_argument(
        "--backend",
        choices=[b.value for b in BackendType],
        default=None,
        help="Override BACKEND_TYPE",
    )

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument("--host", default=None, help="Override API_HOST")
    serve_parser.add_argument("--port", type=int, default=None, help="Override API_PORT")

    return parser


def run_event(event_path: Path, backend_type: Optional[str]) -> int:
    config = get_config()

    try:
        event = FailureEvent.model_validate_json(event_path.read_text(encoding="utf-8"))
    except OSError as e:
        logger.error(f"Cannot read event file {event_path}: {e}")
        return EXIT_BAD_INPUT
    except ValidationError as e:
        logger.error(f"Invalid failure event in {event_path}: {e}")
        return EXIT_BAD_INPUT

    backend_config = config.backend
    if backend_type:
        backend_config = backend_config.model_copy(update={"type": BackendType(backend_type)})

    try:
        backend = create_backend(backend_config)
    except MissingTokenError as e:
        logger.error(f"Backend {backend_config.type.value} unavailable: {e}")
        return EXIT_BAD_INPUT

    with PipelineOrchestrator.from_config(config, backend) as orchestrator:
        try:
            artifact = orchestrator.run_pipeline(event)
        except PipelineFailure as e:
            logger.error(f"Pipeline failed (stage={e.stage}): {e}")
            return EXIT_PIPELINE_FAILED

    print(artifact.model_dump_json(by_alias=True, indent=2))
    return EXIT_OK


def serve(host: Optional[str], port: Optional[int]) -> int:
    config = get_config()
    metrics = PipelineMetrics()
    app = create_app(metrics=metrics)

    logger.info(f"Starting HTTP server on {host or config.api.host}:{port or config.api.port}")
    uvicorn.run(
        app,
        host=host or config.api.host,
        port=port or config.api.port,
        log_level=config.api.log_level.lower(),
    )
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)

    config = get_config()
    setup_logging(args.log_level or config.api.log_level)

    if args.command == "run":
        return run_event(args.event, args.backend)
    return serve(args.host, args.port)


if __name__ == "__main__":
    sys.exit(main())
