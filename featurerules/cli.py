#!/usr/bin/env python3
"""Command-line interface for featurerules.

This module provides the ``featurerules`` command:
- ``validate``: statically check the rules of NodeFeatureRule files
- ``dryrun``: execute rules against NodeFeature files and print the output
- ``compat``: evaluate an image compatibility specification against features
- Configuration file and environment overrides
- Logging options

Example:
    >>> from featurerules.cli import main
    >>> main(["validate", "rules.yaml"])
    0
"""

import argparse
import json
import sys
from typing import Dict, List, Optional, TextIO

from featurerules.api.decode import DecodeError, load_features, load_rules, load_yaml_documents
from featurerules.api.features import Features
from featurerules.api.types import Taint
from featurerules.compat.node_validator import NodeValidator
from featurerules.compat.spec import decode_compatibility_spec
from featurerules.core.constants import FEATURERULES_VERSION, ConfigKey, ErrorCode
from featurerules.core.errors import FeatureRulesError
from featurerules.core.validators import (
    validate_annotations,
    validate_extended_resources,
    validate_labels,
    validate_taints,
)
from featurerules.infrastructure.config_manager import (
    ConfigManager,
    ConfigSource,
    set_global_config,
)
from featurerules.infrastructure.logger import Logger, set_global_logger
from featurerules.rules.engine import execute
from featurerules.rules.validate import validate_rule

DESCRIPTION = "featurerules - evaluate node feature rules against discovered features"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


class CLIError(FeatureRulesError):
    """Exception raised for CLI-related errors."""


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="featurerules",
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Check rule definitions
  featurerules validate nodefeaturerule.yaml

  # Show what the rules produce for a node
  featurerules dryrun nodefeaturerule.yaml nodefeature.yaml

  # Check an image compatibility specification against a node
  featurerules compat compatibility.yaml nodefeature.yaml --tag prod
        """,
    )

    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {FEATURERULES_VERSION}",
    )
    parser.add_argument(
        "-c",
        "--config",
        metavar="FILE",
        type=str,
        help="Configuration file path (YAML format)",
    )

    log_group = parser.add_argument_group("logging options")
    log_group.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    log_group.add_argument(
        "--log-file",
        metavar="FILE",
        type=str,
        help="Also write logs to this file",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    validate_parser = subparsers.add_parser("validate", help="Validate NodeFeatureRule files")
    validate_parser.add_argument("rules", metavar="RULEFILE", help="NodeFeatureRule file")

    dryrun_parser = subparsers.add_parser(
        "dryrun", help="Execute rules against NodeFeature files and print the output"
    )
    dryrun_parser.add_argument("rules", metavar="RULEFILE", help="NodeFeatureRule file")
    dryrun_parser.add_argument(
        "features",
        metavar="FEATUREFILE",
        nargs="+",
        help="NodeFeature files; several files are merged",
    )
    dryrun_parser.add_argument(
        "--fail-fast",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Stop evaluating a rule as soon as its result is known (default: from config)",
    )

    compat_parser = subparsers.add_parser(
        "compat", help="Validate a node against an image compatibility specification"
    )
    compat_parser.add_argument("spec", metavar="SPECFILE", help="Compatibility specification file")
    compat_parser.add_argument(
        "features",
        metavar="FEATUREFILE",
        nargs="+",
        help="NodeFeature files; several files are merged",
    )
    compat_parser.add_argument(
        "-t",
        "--tag",
        dest="tags",
        action="append",
        metavar="TAG",
        help="Only evaluate compatibility sets with this tag (repeatable)",
    )

    return parser


def load_config(args: argparse.Namespace) -> ConfigManager:
    """Build the configuration from the config file and arguments.

    Raises:
        CLIError: If the configuration file cannot be loaded
    """
    try:
        config = ConfigManager(args.config)
    except FeatureRulesError as e:
        raise CLIError(e.message, e.error_code)

    if args.debug:
        config.set(ConfigKey.LOG_LEVEL, "DEBUG", ConfigSource.CLI_ARGS)
    if args.log_file:
        config.set(ConfigKey.LOG_FILE, args.log_file, ConfigSource.CLI_ARGS)
    if getattr(args, "fail_fast", None) is not None:
        config.set(ConfigKey.FAIL_FAST, args.fail_fast, ConfigSource.CLI_ARGS)
    if getattr(args, "tags", None):
        config.set(ConfigKey.COMPAT_TAGS, args.tags, ConfigSource.CLI_ARGS)

    set_global_config(config)
    return config


def setup_logging(config: ConfigManager) -> Logger:
    """Create the logger described by the configuration.

    Raises:
        CLIError: If the log level is unknown
    """
    try:
        logger = Logger("featurerules", level=config.get(ConfigKey.LOG_LEVEL, "INFO"))
    except ValueError as e:
        raise CLIError(str(e))

    log_file = config.get(ConfigKey.LOG_FILE)
    if log_file:
        try:
            logger.add_handler(logger.create_file_handler(log_file))
        except OSError as e:
            raise CLIError(f"cannot open log file {log_file}: {e}", ErrorCode.NOT_FOUND)

    set_global_logger(logger)
    return logger


def get_dynamic_value(value: str, features: Features) -> str:
    """Resolve an "@domain.feature.element" value from attribute features.

    Raises:
        CLIError: If the value is malformed or the element does not exist
    """
    split = value[1:].split(".", 2)
    if len(split) != 3:
        raise CLIError(f"value {value} is not in the form of '@domain.feature.element'")
    feature_name = f"{split[0]}.{split[1]}"
    elements = features.attributes.get(feature_name)
    if elements is None:
        raise CLIError(f"feature {feature_name} not found", ErrorCode.NOT_FOUND)
    if split[2] not in elements:
        raise CLIError(
            f"element {split[2]} not found on feature {feature_name}", ErrorCode.NOT_FOUND
        )
    return elements[split[2]]


def _resolve_values(
    kind: str, values: Dict[str, str], features: Features, out: Dict[str, str], errors: List[str]
) -> None:
    for key, value in values.items():
        if value.startswith("@"):
            try:
                value = get_dynamic_value(value, features)
            except CLIError as e:
                errors.append(f"failed to get dynamic value for {kind} {key!r}: {e}")
                continue
        out[key] = value


def _print_section(title: str, lines: List[str], errors: List[str], stream: TextIO) -> None:
    print(f"***\t{title}\t***", file=stream)
    for line in lines:
        print(line, file=stream)
    if errors:
        print("\t-Validation errors-", file=stream)
        for error in errors:
            print(error, file=stream)


def run_validate(args: argparse.Namespace, logger: Logger, stream: TextIO) -> int:
    """Validate every rule of a NodeFeatureRule file."""
    rules = load_rules(args.rules)
    errors: List[str] = []
    for rule in rules:
        print(f"Validating rule: {rule.name}", file=stream)
        rule_errors = validate_rule(rule)
        for error in rule_errors:
            print(f"\t{error}", file=stream)
        errors.extend(rule_errors)

    logger.info("validation finished", rules=len(rules), errors=len(errors))
    return EXIT_FAILURE if errors else EXIT_OK


def run_dryrun(
    args: argparse.Namespace, config: ConfigManager, logger: Logger, stream: TextIO
) -> int:
    """Execute every rule and print the combined output with its validation."""
    rules = load_rules(args.rules)
    features = load_features(args.features)
    fail_fast = bool(config.get(ConfigKey.FAIL_FAST, True))

    errors: List[str] = []
    labels: Dict[str, str] = {}
    extended_resources: Dict[str, str] = {}
    annotations: Dict[str, str] = {}
    taints: List[Taint] = []

    for rule in rules:
        print(f"Processing rule: {rule.name}", file=stream)
        try:
            out = execute(rule, features, fail_fast=fail_fast, logger=logger)
        except FeatureRulesError as e:
            errors.append(f"failed to process rule: {rule.name!r} - {e}")
            continue
        if not out.match_status.is_match:
            continue
        taints.extend(out.taints or [])
        _resolve_values("label", out.labels or {}, features, labels, errors)
        _resolve_values("extendedResource", out.extended_resources or {}, features, extended_resources, errors)
        annotations.update(out.annotations or {})

    if taints:
        _print_section("Taints", [str(t) for t in taints], validate_taints(taints), stream)
    if labels:
        _print_section(
            "Labels", [f"{k}={v}" for k, v in sorted(labels.items())], validate_labels(labels), stream
        )
    if extended_resources:
        _print_section(
            "Extended Resources",
            [f"{k}={v}" for k, v in sorted(extended_resources.items())],
            validate_extended_resources(extended_resources),
            stream,
        )
    if annotations:
        _print_section(
            "Annotations",
            [f"{k}={v}" for k, v in sorted(annotations.items())],
            validate_annotations(annotations),
            stream,
        )

    for error in errors:
        print(error, file=sys.stderr)
    return EXIT_FAILURE if errors else EXIT_OK


def run_compat(
    args: argparse.Namespace, config: ConfigManager, logger: Logger, stream: TextIO
) -> int:
    """Evaluate a compatibility specification and print the JSON status."""
    docs = load_yaml_documents(args.spec)
    if len(docs) != 1:
        raise CLIError(f"expected exactly one compatibility specification in {args.spec}")
    spec = decode_compatibility_spec(docs[0])
    features = load_features(args.features)

    validator = NodeValidator(spec, features, tags=config.get(ConfigKey.COMPAT_TAGS), logger=logger)
    statuses = validator.execute()
    json.dump([s.to_dict() for s in statuses], stream, indent=2)
    print(file=stream)

    return EXIT_OK if all(s.is_match for s in statuses) else EXIT_FAILURE


def main(argv: Optional[List[str]] = None, stream: TextIO = sys.stdout) -> int:
    """Run the command line.

    Args:
        argv: Arguments (defaults to sys.argv[1:])
        stream: Where reports are written

    Returns:
        Process exit code
    """
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args)
        logger = setup_logging(config)

        if args.command == "validate":
            return run_validate(args, logger, stream)
        if args.command == "dryrun":
            return run_dryrun(args, config, logger, stream)
        return run_compat(args, config, logger, stream)
    except DecodeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE
    except FeatureRulesError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE if isinstance(e, CLIError) else EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
