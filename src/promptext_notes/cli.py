"""Command line entrypoint: run the generation workflow on a prompt."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .config import DEFAULT_CONFIG_PATH, apply_overrides, load_settings
from .llm.context import RunContext
from .llm.resolver import StagePlan, resolve_stages
from .llm.types import ConfigurationError, ProviderError, describe_error
from .workflow import TwoStageWorkflow

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="AI generation pipeline for promptext-notes")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Path to the YAML config file")
    parser.add_argument("--provider", default=None, help="AI provider override")
    parser.add_argument("--model", default=None, help="AI model override")
    parser.add_argument("--quiet", action="store_true", help="Only print warnings and errors")
    parser.add_argument("--verbose", action="store_true", help="Print debug output")

    subparsers = parser.add_subparsers(dest="command")

    generate = subparsers.add_parser("generate", help="Generate text from a prompt (default)")
    generate.add_argument("--prompt-file", default=None, help="Prompt file (reads stdin if omitted)")
    generate.add_argument("--diff-file", default=None, help="Diff passed to the polish stage for verification")
    generate.add_argument("--system-prompt", default=None, help="Optional system prompt for discovery")
    generate.add_argument("--output", default=None, help="Output file (prints to stdout if omitted)")
    generate.add_argument(
        "--deadline",
        type=float,
        default=None,
        help="Overall deadline in seconds (default: twice the request timeout per stage)",
    )
    polish = generate.add_mutually_exclusive_group()
    polish.add_argument("--polish", dest="polish", action="store_true", default=None, help="Enable the polish stage")
    polish.add_argument("--no-polish", dest="polish", action="store_false", help="Disable the polish stage")

    subparsers.add_parser("show-config", help="Print the resolved stage configuration")
    # Running without a subcommand means "generate" with its defaults.
    parser.set_defaults(
        prompt_file=None,
        diff_file=None,
        system_prompt=None,
        output=None,
        deadline=None,
        polish=None,
    )
    return parser


def _configure_logging(quiet: bool, verbose: bool) -> None:
    level = logging.INFO
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)


def _read_text(path: Optional[str]) -> str:
    if path is None:
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def _default_deadline(plan: StagePlan) -> float:
    total = plan.discovery.timeout_seconds * 2
    if plan.polish is not None:
        total += plan.polish.timeout_seconds * 2
    return total


def _show_config(plan: StagePlan) -> None:
    stages = [("discovery", plan.discovery)]
    if plan.polish is not None:
        stages.append(("polish", plan.polish))
    for stage, cfg in stages:
        print(f"[{stage}]")
        print(f"provider     = {cfg.provider}")
        print(f"model        = {cfg.model}")
        print(f"api_key_env  = {cfg.api_key_env or '(none)'}")
        print(f"max_tokens   = {cfg.max_tokens}")
        print(f"temperature  = {cfg.temperature}")
        print(f"timeout      = {cfg.timeout_seconds}s")
        print(f"retry        = {cfg.retry.attempts} x {cfg.retry.backoff} from {cfg.retry.initial_delay_seconds}s")


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    parser = _build_parser()
    args = parser.parse_args(argv)
    command = args.command or "generate"
    _configure_logging(args.quiet, args.verbose)

    try:
        settings = apply_overrides(load_settings(args.config), provider=args.provider, model=args.model)
        plan = resolve_stages(settings, polish=args.polish)

        if command == "show-config":
            _show_config(plan)
            return 0

        prompt = _read_text(args.prompt_file)
        diff = _read_text(args.diff_file) if args.diff_file else ""
        deadline = args.deadline if args.deadline is not None else _default_deadline(plan)

        workflow = TwoStageWorkflow(plan)
        result = workflow.run(
            prompt,
            diff=diff,
            system_prompt=args.system_prompt,
            ctx=RunContext(timeout_seconds=deadline),
        )
    except ConfigurationError as exc:
        print(f"Configuration error: {describe_error(exc)}", file=sys.stderr)
        return 2
    except ProviderError as exc:
        stage = f" ({exc.stage} stage)" if exc.stage else ""
        print(f"Error{stage}: {describe_error(exc)}", file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    logger.info("Total: %d tokens, estimated cost $%.4f", result.tokens_used, result.cost_usd)
    if not args.output:
        print(result.text)
        return 0
    try:
        Path(args.output).write_text(result.text, encoding="utf-8")
    except OSError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    logger.info("Written to %s", args.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
