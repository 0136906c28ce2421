"""
uiflow - command line entry point.

Runs a JSON workflow definition against a Playwright browser session and
prints the run report.
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

import structlog
from pydantic import ValidationError

from uiflow import __version__
from uiflow.config import settings
from uiflow.core.fixtures import get_fixture_generator
from uiflow.core.playwright_session import BrowserOptions, BrowserType, PlaywrightSession
from uiflow.core.runner import WorkflowRunner
from uiflow.core.workflow import FailurePolicy, RunConfig, RunReport, RunVerdict, Workflow
from uiflow.schemas.workflow import RunReportSchema, WorkflowDefinition


def configure_logging():
    """Configure structured logging."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=settings.log_level.upper(),
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
            if settings.log_format == "json"
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def load_definition(path: str | Path) -> WorkflowDefinition:
    """Load and validate a workflow definition from a JSON file."""
    with open(path, encoding="utf-8") as f:
        return WorkflowDefinition.model_validate(json.load(f))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="uiflow",
        description="Run declarative browser workflows",
    )
    parser.add_argument("--version", action="version", version=f"uiflow {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run a workflow definition (JSON)")
    run.add_argument("workflow", help="Path to the workflow JSON file")
    run.add_argument("--base-url", help="Base URL for relative navigate steps")
    run.add_argument(
        "--continue-on-failure",
        action="store_true",
        help="Run every step even after a failure",
    )
    run.add_argument("--step-timeout", type=int, help="Per-step timeout in ms")
    run.add_argument("--run-timeout", type=int, help="Whole-run timeout in ms")
    run.add_argument(
        "--browser",
        choices=[b.value for b in BrowserType],
        help="Browser engine",
    )
    run.add_argument("--headed", action="store_true", help="Show the browser window")
    run.add_argument("--seed", type=int, help="Seed for generated fixture data")
    run.add_argument("--output", help="Write the JSON report to this file")
    return parser


def build_run_config(definition: WorkflowDefinition, args: argparse.Namespace) -> RunConfig:
    """Merge command line overrides over the definition's config and settings."""
    overrides = {
        "base_url": args.base_url,
        "per_step_timeout_ms": args.step_timeout,
        "whole_run_timeout_ms": args.run_timeout,
    }
    if args.continue_on_failure:
        overrides["failure_policy"] = FailurePolicy.CONTINUE_ON_FAILURE
    return definition.config.model_copy(
        update={k: v for k, v in overrides.items() if v is not None}
    ).to_run_config(settings)


async def run_workflow(workflow: Workflow, config: RunConfig, args: argparse.Namespace) -> RunReport:
    """Run a workflow in a fresh browser session."""
    logger = structlog.get_logger()

    fixtures = get_fixture_generator()
    if args.seed is not None:
        fixtures.reseed(args.seed)

    options = BrowserOptions.from_settings(
        browser_type=BrowserType(args.browser) if args.browser else None,
        headless=False if args.headed else None,
    )

    async with PlaywrightSession(options) as session:
        runner = WorkflowRunner(session, config, fixtures=fixtures)
        report = await runner.run(workflow)

        if report.verdict != RunVerdict.PASS and settings.screenshot_on_failure:
            stamp = datetime.utcnow().strftime("%Y%m%dT%H%M%S")
            path = Path(settings.screenshot_dir) / f"{workflow.name}-{stamp}.png"
            try:
                await session.screenshot(path=str(path))
            except Exception as e:
                logger.warning("failure_screenshot_error", error=str(e))

    return report


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    logger = structlog.get_logger()
    args = build_parser().parse_args(argv)

    try:
        definition = load_definition(args.workflow)
        workflow = definition.to_workflow()
        config = build_run_config(definition, args)
    except (OSError, json.JSONDecodeError, ValidationError, ValueError) as e:
        logger.error("workflow_load_failed", path=args.workflow, error=str(e))
        return 2

    report = asyncio.run(run_workflow(workflow, config, args))
    payload = RunReportSchema.from_report(report).model_dump_json(indent=2)

    if args.output:
        Path(args.output).write_text(payload, encoding="utf-8")
    print(payload)

    return 0 if report.verdict == RunVerdict.PASS else 1


if __name__ == "__main__":
    sys.exit(main())
