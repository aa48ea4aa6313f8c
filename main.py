import logging
import os
import sys
from pathlib import Path

from broll.config import AppConfig, DEFAULT_CONFIG_PATH


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def launch_gui(config_path: Path | None = None) -> int:
    from broll.gui import launch_window

    config = AppConfig(config_path or DEFAULT_CONFIG_PATH)
    return launch_window(config)


def main(argv: list[str] | None = None) -> int:
    configure_logging(os.getenv("BROLL_LOG_LEVEL", "INFO"))
    args = list(sys.argv[1:] if argv is None else argv)
    if not args or args == ["gui"]:
        return launch_gui()
    if args[0] == "extract":
        args = args[1:]

    from broll.__main__ import main as run_cli

    return run_cli(args)


if __name__ == "__main__":
    sys.exit(main())
