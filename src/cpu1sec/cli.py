"""CLI interface for cpu1sec.

munin-node runs the plugin without arguments to fetch values and with
``config`` to fetch the graph definitions. ``acquire`` runs the sampler.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from . import __version__
from .config import PluginConfig, load_config
from .errors import Cpu1secError

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_REPORT_FAILED = 1
EXIT_SAMPLER_FATAL = 2
EXIT_UNKNOWN_MODE = 3
EXIT_BAD_ARGC = 4

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _setup_logging(cfg: PluginConfig, to_file: bool) -> None:
    """Log to stderr for munin-node, or to the log file for the sampler.

    stdout carries the munin protocol and is never used for logging.
    """
    if to_file:
        log_path = cfg.log_path
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logging.basicConfig(level=logging.INFO, format=_LOG_FORMAT, filename=str(log_path))
    else:
        logging.basicConfig(level=logging.WARNING, format=_LOG_FORMAT, stream=sys.stderr)


def _make_plugin(cfg: PluginConfig):
    from .plugin import CpuPlugin

    return CpuPlugin(cfg)


def _cmd_report(cfg: PluginConfig) -> int:
    """Print every value cached since the last run."""
    plugin = _make_plugin(cfg)
    try:
        Path(cfg.state_dir).mkdir(parents=True, exist_ok=True)
        sys.stdout.flush()
        plugin.report(sys.stdout.buffer)
    except (Cpu1secError, OSError) as exc:
        logger.error("Failed to report values: %s", exc)
        return EXIT_REPORT_FAILED
    return EXIT_OK


def _cmd_config(cfg: PluginConfig) -> int:
    """Print the graph definitions, and the values too if munin allows it."""
    plugin = _make_plugin(cfg)
    try:
        plugin.describe(sys.stdout)
    except (Cpu1secError, OSError) as exc:
        logger.error("Failed to write config: %s", exc)
        return EXIT_REPORT_FAILED
    if cfg.dirtyconfig:
        return _cmd_report(cfg)
    return EXIT_OK


def _cmd_acquire(cfg: PluginConfig) -> int:
    """Run the sampler in the foreground until it is signalled."""
    plugin = _make_plugin(cfg)
    try:
        if not plugin.run_sampler():
            return EXIT_OK
    except (Cpu1secError, OSError):
        logger.exception("Sampler stopped on a fatal error")
        return EXIT_SAMPLER_FATAL
    return EXIT_OK


MODES = {
    "config": _cmd_config,
    "acquire": _cmd_acquire,
}


def main(argv: list[str] | None = None) -> None:
    """Entry point for the cpu1sec munin plugin."""
    parser = argparse.ArgumentParser(
        prog="cpu1sec",
        description="munin plugin graphing CPU usage at one second resolution",
    )
    parser.add_argument("--version", action="version", version=f"cpu1sec {__version__}")
    parser.add_argument(
        "mode", nargs="*",
        help="'config' to describe the graphs, 'acquire' to run the sampler; "
             "no mode prints the cached values",
    )
    args, extra = parser.parse_known_args(argv)
    words = list(args.mode) + extra

    cfg = load_config()
    _setup_logging(cfg, to_file=words == ["acquire"])

    if len(words) > 1:
        logger.error("Expected at most one argument, got %d: %s", len(words), " ".join(words))
        sys.exit(EXIT_BAD_ARGC)

    if not words:
        code = _cmd_report(cfg)
    elif words[0] in MODES:
        code = MODES[words[0]](cfg)
    else:
        logger.error("Unknown mode %r", words[0])
        code = EXIT_UNKNOWN_MODE

    if code != EXIT_OK:
        sys.exit(code)


if __name__ == "__main__":
    main()
