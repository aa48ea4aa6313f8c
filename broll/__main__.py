from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Iterable

from .cli import add_extract_arguments, build_extract_request, read_script
from .completion_client import CompletionClient
from .config import DEFAULT_CONFIG_PATH, AppConfig
from .engine import KeywordExtractor
from .parser import format_entries


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m broll",
        description="Extract cinematic b-roll keyword phrases from a narrative script.",
    )
    add_extract_arguments(parser)
    return parser


def load_config(path_override: Path | None) -> AppConfig:
    return AppConfig(path_override or DEFAULT_CONFIG_PATH)


def launch_gui(config: AppConfig) -> int:
    from .gui import launch_window

    return launch_window(config)


def main(argv: Iterable[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    config = load_config(getattr(args, "config", None))
    if config.load_warning:
        _console_log("warning", config.load_warning)
    if getattr(args, "gui", False):
        return launch_gui(config)
    try:
        script = read_script(args.input)
        request, settings = build_extract_request(args, config, script)
        extractor = KeywordExtractor(request, client=CompletionClient(settings), log_callback=_console_log)
    except (ValueError, OSError) as exc:
        parser.error(str(exc))
    result = extractor.run()
    if args.json:
        print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    else:
        print(result.summary())
        print(format_entries(result.entries, result.mode))
    if args.output and result.ok:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(result.to_text() + "\n", encoding="utf-8")
        _console_log("success", f"Saved {result.entry_count} entries to {args.output}")
    if extractor.log_path:
        print(f"Detailed log: {extractor.log_path}")
    return 0 if result.ok else 1


def _console_log(level: str, message: str) -> None:
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    if level.lower() == "success":
        prefix = "[OK]"
    elif level.lower() == "warning":
        prefix = "[WARN]"
    elif level.lower() == "error":
        prefix = "[ERR]"
    else:
        prefix = "[INFO]"
    print(f"{prefix} [{timestamp}] {message}", file=sys.stderr)


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
