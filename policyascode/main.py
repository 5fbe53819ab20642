"""
Main Orchestration Module

Command-line entry point. Wires settings, the LLM client and the stage
runners together for the ``extract``, ``consolidate``, ``validate`` and
``config`` sub-commands.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

from pydantic import ValidationError

from policyascode import __version__
from policyascode.config import (
    PERSISTED_KEYS,
    Settings,
    get_config_path,
    load_settings,
    save_settings,
)
from policyascode.consolidation import RuleConsolidator
from policyascode.exceptions import (
    ApiError,
    ConfigError,
    DocumentNotFoundError,
    UnknownRuleError,
)
from policyascode.extraction import RuleExtractor
from policyascode.llm_client import LLMClient
from policyascode.models import RuleSet
from policyascode.utils import dump_json, load_json, save_json, setup_logging
from policyascode.validation import RuleValidator

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130

DEFAULT_RULES_FILE = "rules.json"


# ============================================================================
# Argument parsing
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for all sub-commands."""
    parser = argparse.ArgumentParser(
        prog="policyascode",
        description="Extract, consolidate and validate policy rules with an LLM",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: LOG_LEVEL or INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="<command>")
    subparsers.required = True

    # extract
    extract = subparsers.add_parser("extract", help="Extract rules from policy documents")
    extract.add_argument("files", nargs="+", metavar="FILE", help="Policy documents (text or PDF)")
    extract.add_argument("--output", "-o", help="Output JSON file for rules (default: stdout)")
    extract.add_argument("--extraction-prompt", help="Custom extraction system prompt")
    extract.add_argument("--model", "-m", help="Model to use")
    extract.set_defaults(handler=cmd_extract)

    # consolidate
    consolidate = subparsers.add_parser("consolidate", help="Consolidate and deduplicate rules")
    consolidate.add_argument(
        "--input", "-i", "--rules", "-r",
        dest="input",
        default=DEFAULT_RULES_FILE,
        help=f"Input rules JSON file (default: {DEFAULT_RULES_FILE})",
    )
    consolidate.add_argument("--output", "-o", help="Output JSON file (default: stdout)")
    consolidate.add_argument("--consolidation-prompt", help="Custom consolidation system prompt")
    consolidate.add_argument("--model", "-m", help="Model to use")
    consolidate.add_argument(
        "--strict",
        action="store_true",
        help="Fail if the model references rule ids that do not exist",
    )
    consolidate.set_defaults(handler=cmd_consolidate)

    # validate
    validate = subparsers.add_parser("validate", help="Validate documents against their rules")
    validate.add_argument("files", nargs="+", metavar="FILE", help="Documents to validate")
    validate.add_argument(
        "--rules", "-r",
        default=DEFAULT_RULES_FILE,
        help=f"Rules JSON file (default: {DEFAULT_RULES_FILE})",
    )
    validate.add_argument("--output", "-o", help="Output JSON file for results (default: stdout)")
    validate.add_argument("--validation-prompt", help="Custom validation system prompt")
    validate.add_argument("--model", "-m", help="Model to use")
    validate.set_defaults(handler=cmd_validate)

    # config
    config = subparsers.add_parser("config", help="Save API endpoint, key and model selection")
    config.add_argument("--api-key", help="API key to save")
    config.add_argument("--base-url", help="API base URL to save")
    config.add_argument("--model", "-m", help="Default model to save")
    config.add_argument("--show", action="store_true", help="Print the effective configuration after saving (default when no values are given)")
    config.set_defaults(handler=cmd_config)

    return parser


# ============================================================================
# Helpers
# ============================================================================

def _summary(message: str) -> None:
    """Print a summary line; stdout is reserved for JSON output."""
    print(message, file=sys.stderr)


def _write_output(data: Any, output: Optional[str]) -> None:
    if output:
        save_json(data, Path(output))
    else:
        print(dump_json(data))


def _load_ruleset(path: str) -> RuleSet:
    """
    Read a rule collection from disk.

    Raises:
        DocumentNotFoundError: If the file does not exist
        ValueError: If the file is not a valid rule collection
    """
    data = load_json(Path(path))
    try:
        return RuleSet.from_data(data)
    except ValidationError as e:
        raise ValueError(f"{path} is not a valid rule collection: {e}") from e


def _client(settings: Settings) -> LLMClient:
    logger.info(f"Using model {settings.model} at {settings.base_url}")
    return LLMClient(settings)


# ============================================================================
# Commands
# ============================================================================

def cmd_extract(args: argparse.Namespace, settings: Settings) -> int:
    """Extract rules from each input file into one collection."""
    extractor = RuleExtractor(_client(settings), prompt=args.extraction_prompt)
    outcome = extractor.extract(args.files)

    _write_output(outcome.store.to_ruleset().to_data(), args.output)
    _summary(outcome.describe())
    if args.output:
        _summary(f"Saved {outcome.total} total rules to {args.output}")

    return EXIT_FAILURE if outcome.failed else EXIT_OK


def cmd_consolidate(args: argparse.Namespace, settings: Settings) -> int:
    """Apply LLM-proposed delete/merge edits to a rule collection."""
    try:
        ruleset = _load_ruleset(args.input)
    except (DocumentNotFoundError, ValueError) as e:
        logger.error(f"Cannot read rules: {e}")
        return EXIT_FAILURE

    consolidator = RuleConsolidator(
        _client(settings),
        prompt=args.consolidation_prompt,
        strict=args.strict,
    )
    try:
        result = consolidator.consolidate(ruleset)
    except ApiError as e:
        logger.error(f"Failed to get consolidation suggestions: {e}")
        return EXIT_FAILURE
    except UnknownRuleError as e:
        logger.error(str(e))
        return EXIT_FAILURE

    _write_output(result.ruleset.to_data(), args.output)
    _summary(result.describe())
    if result.skipped:
        _summary(f"Skipped {result.skipped} edits referencing unknown rules")
    return EXIT_OK


def cmd_validate(args: argparse.Namespace, settings: Settings) -> int:
    """Validate documents against the rules extracted from them."""
    try:
        ruleset = _load_ruleset(args.rules)
    except (DocumentNotFoundError, ValueError) as e:
        logger.error(f"Cannot read rules: {e}")
        return EXIT_FAILURE

    validator = RuleValidator(_client(settings), prompt=args.validation_prompt)
    outcome = validator.validate(ruleset, args.files)

    _write_output(outcome.report.to_data(), args.output)
    _summary(f"Overall Summary: {outcome.describe()}")
    if outcome.skipped:
        _summary(f"No applicable rules for: {', '.join(outcome.skipped)}")
    if outcome.failed:
        _summary(f"Failed: {', '.join(outcome.failed)}")

    return EXIT_FAILURE if outcome.failed else EXIT_OK


def cmd_config(args: argparse.Namespace, settings: Optional[Settings] = None) -> int:
    """Persist API settings to the config file, or show the effective ones."""
    updates = {name: getattr(args, name, None) for name in PERSISTED_KEYS}
    changed = any(value is not None for value in updates.values())

    if changed:
        if updates["base_url"] is not None:
            # Validate before anything is written
            load_settings(base_url=updates["base_url"])
        path = save_settings(updates)
        _summary(f"Saved configuration to {path}")

    if changed and not args.show:
        return EXIT_OK

    effective = load_settings()
    print(json.dumps({
        "config_file": str(get_config_path()),
        "api_key": effective.masked_key(),
        "base_url": effective.base_url,
        "model": effective.model,
    }, indent=2))
    return EXIT_OK


# ============================================================================
# Entry point
# ============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        if args.handler is cmd_config:
            setup_logging(args.log_level or "INFO")
            return cmd_config(args)

        settings = load_settings(model=args.model, log_level=args.log_level)
        setup_logging(settings.log_level, settings.log_file)
        logger.debug(f"Command: {args.command}")
        return args.handler(args, settings)

    except ConfigError as e:
        logger.error(str(e))
        return EXIT_FAILURE

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED


def run() -> None:
    """Console-script wrapper."""
    sys.exit(main())


if __name__ == "__main__":
    run()
