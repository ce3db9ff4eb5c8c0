"""The ``ccline`` command: read Claude Code's JSON on stdin and print a statusline."""

from __future__ import annotations

import argparse
import json
import sys
import tomllib
from collections.abc import Sequence

from cometixline.collect import collect_all_segments
from cometixline.config import (
    AnsiColor,
    ColorConfig,
    Config,
    IconConfig,
    InputData,
    SegmentConfig,
    SegmentId,
    StyleConfig,
    StyleMode,
    TextStyleConfig,
)
from cometixline.loader import load_config, load_from_path, themes_path
from cometixline.statusline import StatusLineGenerator

_VERSION = "1.1.2"

_LOAD_ERRORS = (OSError, ValueError, tomllib.TOMLDecodeError)

# (id, enabled, plain icon, nerd-font icon, 16-colour index)
_DEFAULT_SEGMENTS = (
    (SegmentId.MODEL, True, "🤖", "\ue26d", 14),
    (SegmentId.DIRECTORY, True, "📁", "\uf024b", 11),
    (SegmentId.GIT, True, "🌿", "\uf02a2", 12),
    (SegmentId.CONTEXT_WINDOW, True, "⚡️", "\uf49b", 13),
    (SegmentId.USAGE, False, "📊", "\uf0a9e", 14),
    (SegmentId.USAGE_7D, False, "📅", "\uf06ad", 14),
    (SegmentId.EXTRA_USAGE, False, "💳", "\uf0a9e", 14),
    (SegmentId.COST, False, "💰", "\ueec1", 3),
    (SegmentId.SESSION, False, "⏱️", "\uf19bb", 2),
    (SegmentId.OUTPUT_STYLE, False, "🎯", "\uf12f5", 6),
)


def default_config() -> Config:
    """Configuration used when no config file exists."""
    segments = []
    for segment_id, enabled, plain, nerd_font, color in _DEFAULT_SEGMENTS:
        ansi = AnsiColor.from_dict({"c16": color})
        segments.append(
            SegmentConfig(
                id=segment_id,
                enabled=enabled,
                icon=IconConfig(plain=plain, nerd_font=nerd_font),
                colors=ColorConfig(icon=ansi, text=AnsiColor.from_dict({"c16": color}), background=None),
                styles=TextStyleConfig(text_bold=segment_id is SegmentId.MODEL),
                options={},
            )
        )
    return Config(
        style=StyleConfig(mode=StyleMode.NERD_FONT, separator=" | "),
        segments=segments,
        theme="default",
    )


def _load_theme(name: str) -> Config:
    try:
        return load_from_path(themes_path() / f"{name}.toml")
    except _LOAD_ERRORS:
        return default_config()


def _load_user_config() -> Config:
    try:
        config = load_config(default=None)
    except _LOAD_ERRORS:
        return default_config()
    return config if config is not None else default_config()


def render(config: Config, input_data: InputData) -> str:
    """Collect every enabled segment and render them as one statusline."""
    return StatusLineGenerator(config).generate(collect_all_segments(config, input_data))


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ccline", description="High-performance Claude Code StatusLine"
    )
    parser.add_argument("-t", "--theme", help="Set theme")
    parser.add_argument("-V", "--version", action="version", version=f"ccline {_VERSION}")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point; returns the process exit status."""
    parser = _parser()
    args = parser.parse_args(argv)

    config = _load_theme(args.theme) if args.theme else _load_user_config()

    if sys.stdin.isatty():
        parser.print_help()
        return 0

    try:
        input_data = InputData.from_dict(json.load(sys.stdin))
    except (ValueError, TypeError, AttributeError, KeyError) as error:
        print(f"Error: {error}", file=sys.stderr)
        return 1

    print(render(config, input_data))
    return 0


if __name__ == "__main__":
    sys.exit(main())