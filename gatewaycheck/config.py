"""Command-line options shared by the conformance suites."""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from typing import Sequence

DEFAULT_GATEWAY_CLASS = "gateway-conformance"

_TRUE_WORDS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_WORDS = frozenset({"0", "f", "F", "FALSE", "false", "False"})


def _parse_bool(text: str) -> bool:
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value {text!r}")


@dataclass(frozen=True)
class Flags:
    """Settings that control a conformance run."""

    gateway_class_name: str = DEFAULT_GATEWAY_CLASS
    show_debug: bool = False
    cleanup_base_resources: bool = True


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gatewaycheck",
        description="Gateway API conformance options.",
        allow_abbrev=False,
    )
    parser.add_argument(
        "-gateway-class",
        "--gateway-class",
        dest="gateway_class_name",
        default=DEFAULT_GATEWAY_CLASS,
        help="Name of GatewayClass to use for tests",
    )
    parser.add_argument(
        "-debug",
        "--debug",
        dest="show_debug",
        nargs="?",
        const=True,
        default=False,
        type=_parse_bool,
        help="Whether to print debug logs",
    )
    parser.add_argument(
        "-cleanup-base-resources",
        "--cleanup-base-resources",
        dest="cleanup_base_resources",
        nargs="?",
        const=True,
        default=True,
        type=_parse_bool,
        help="Whether to cleanup base test resources after the run",
    )
    return parser


def parse_flags(argv: Sequence[str] | None = None) -> Flags:
    """Parse command-line arguments into a Flags value."""
    namespace = _build_parser().parse_args(None if argv is None else list(argv))
    return Flags(
        gateway_class_name=namespace.gateway_class_name,
        show_debug=namespace.show_debug,
        cleanup_base_resources=namespace.cleanup_base_resources,
    )