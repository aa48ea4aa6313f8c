from __future__ import annotations

import argparse
import sys
from argparse import ArgumentParser
from pathlib import Path
from typing import Optional, TextIO, Tuple

from .completion_client import CompletionSettings, KNOWN_MODELS, validate_completion_settings
from .config import AppConfig
from .models import ExtractionMode, ExtractionRequest


def add_extract_arguments(parser: ArgumentParser) -> None:
    parser.add_argument("-i", "--input", type=Path, default=None, help="Script file (reads stdin when omitted).")
    parser.add_argument(
        "-m",
        "--mode",
        choices=[mode.value for mode in ExtractionMode],
        default=None,
        help="Output grammar: 3-word phrases, 4-word phrases, or Title/Meta metadata (default: config).",
    )
    parser.add_argument(
        "--model",
        default=None,
        help=f"Model identifier sent to the completion service (known: {', '.join(KNOWN_MODELS)}).",
    )
    parser.add_argument("--endpoint", default=None, help="Override the completion endpoint URL.")
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Sentences per request (0 = mode default: 10 for phrases, 8 for metadata).",
    )
    parser.add_argument(
        "--delay", type=float, default=None, help="Seconds to wait between requests (default depends on the mode)."
    )
    parser.add_argument("--timeout", type=float, default=None, help="Per-request timeout in seconds.")
    parser.add_argument(
        "--retries",
        type=int,
        default=None,
        help="Extra attempts for transient transport failures (default: 0).",
    )
    parser.add_argument("--knowledge-base", type=Path, default=None, help="Optional knowledge base text file.")
    parser.add_argument("--schema-tool", type=Path, default=None, help="Optional schema tool text file.")
    parser.add_argument("-o", "--output", type=Path, default=None, help="Save the entries to this text file.")
    parser.add_argument("--json", action="store_true", help="Print the full result as JSON instead of text.")
    parser.add_argument("--log-dir", type=Path, default=None, help="Directory for a per-run log file.")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.json (user profile by default).")
    parser.add_argument("--gui", action="store_true", help="Launch the GUI instead of running from CLI.")
    parser.add_argument(
        "--encode-messages",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Send the conversation as a JSON-encoded string (hosted endpoint format).",
    )


def read_script(path: Optional[Path], stdin: Optional[TextIO] = None) -> str:
    if path is not None:
        return path.expanduser().read_text(encoding="utf-8", errors="replace")
    stream = stdin if stdin is not None else sys.stdin
    return stream.read()


def _optional_path(value: object) -> Optional[Path]:
    text = str(value or "").strip()
    return Path(text).expanduser() if text else None


def build_extract_request(
    args: argparse.Namespace,
    config: AppConfig,
    script: str,
) -> Tuple[ExtractionRequest, CompletionSettings]:
    mode = ExtractionMode.from_flag(args.mode) if args.mode else config.get("mode")
    model = (args.model or config.get("model") or "").strip()
    endpoint = (args.endpoint or config.get("endpoint_url") or "").strip()
    valid, message = validate_completion_settings(endpoint, model)
    if not valid:
        raise ValueError(message)
    batch_size = args.batch_size if args.batch_size is not None else config.get("batch_size")
    if batch_size < 0:
        raise ValueError("Batch size cannot be negative.")
    delay = args.delay if args.delay is not None else config.get("request_delay")
    if delay is not None and delay < 0:
        raise ValueError("Delay cannot be negative.")
    if args.retries is not None:
        if args.retries < 0:
            raise ValueError("Retries cannot be negative.")
        max_attempts = args.retries + 1
    else:
        max_attempts = max(1, config.get("max_attempts"))
    encode_messages = args.encode_messages
    if encode_messages is None:
        encode_messages = config.get("encode_messages")
    request = ExtractionRequest(
        script=script,
        model=model,
        mode=mode,
        batch_size=int(batch_size),
        delay=float(delay) if delay is not None else None,
        knowledge_base_path=args.knowledge_base or _optional_path(config.get("knowledge_base_path")),
        schema_tool_path=args.schema_tool or _optional_path(config.get("schema_tool_path")),
        log_dir=args.log_dir,
    )
    settings = CompletionSettings(
        model=model,
        endpoint_url=endpoint,
        timeout=args.timeout if args.timeout is not None else config.get("request_timeout"),
        max_attempts=max_attempts,
        encode_messages=bool(encode_messages),
    )
    return request, settings
