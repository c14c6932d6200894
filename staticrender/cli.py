"""CLI entrypoints for staticrender commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Dict, List

from .config import (
    BUILTIN_TEMPLATE_ENGINES,
    DEFAULT_CONFIG_FILENAME,
    ConfigError,
    RenderConfig,
    load_config,
    write_default_config,
)
from .livereload import LiveReloadServer
from .logging import configure_logging, get_logger
from .orchestrator import NoEntryPointsError, Orchestrator

_COMMANDS = ("render", "init", "list")
_DEFAULT_COMMAND = "render"

logger = get_logger("cli")


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_config_option(parser: argparse.ArgumentParser, *, help_text: str) -> None:
    parser.add_argument("-c", "--config", default=None, metavar="PATH", help=help_text)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="staticrender",
        description="Render component modules to static markup and keep them in sync while you edit.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    render_parser = subparsers.add_parser(
        "render",
        help="Render entry points (the default command).",
    )
    _add_verbose_option(render_parser, suppress_default=True)
    _add_config_option(render_parser, help_text="Path to the configuration file.")
    render_parser.add_argument(
        "files",
        nargs="*",
        help="Entry points to render, relative to the entry-point directory (defaults to all).",
    )
    render_parser.add_argument(
        "-w",
        "--watch",
        action="store_true",
        help="Watch sources and re-render affected entry points on change.",
    )
    render_parser.add_argument(
        "-l",
        "--live-reload",
        action="store_true",
        help="Notify connected browsers over WebSocket after each rebuild (watch mode).",
    )
    render_parser.add_argument(
        "-p",
        "--port",
        type=int,
        default=None,
        help="WebSocket port for live reload (overrides the configuration).",
    )
    render_parser.add_argument(
        "-o",
        "--output",
        default=None,
        metavar="DIR",
        help="Output directory (overrides the configuration).",
    )

    init_parser = subparsers.add_parser(
        "init",
        help="Create a staticrender configuration file.",
    )
    _add_verbose_option(init_parser, suppress_default=True)
    _add_config_option(
        init_parser,
        help_text=f"Where to write the configuration (defaults to ./{DEFAULT_CONFIG_FILENAME}).",
    )
    init_parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Overwrite an existing configuration file.",
    )
    init_parser.add_argument("--entry-points", default=None, help="Entry-point directory.")
    init_parser.add_argument("--output", default=None, help="Output directory.")
    init_parser.add_argument("--templates", default=None, help="Template directory.")
    init_parser.add_argument(
        "--engine",
        default=None,
        choices=BUILTIN_TEMPLATE_ENGINES,
        help="Template engine used to merge rendered markup.",
    )

    list_parser = subparsers.add_parser(
        "list",
        help="List discovered entry points.",
    )
    _add_verbose_option(list_parser, suppress_default=True)
    _add_config_option(list_parser, help_text="Path to the configuration file.")

    return parser


def _with_default_command(argv: List[str]) -> List[str]:
    """Insert ``render`` when no sub-command is given (``staticrender -w``)."""
    for token in argv:
        if token in ("-h", "--help") and len(argv) == 1:
            return argv
        if not token.startswith("-"):
            return argv if token in _COMMANDS else [_DEFAULT_COMMAND, *argv]
    return [_DEFAULT_COMMAND, *argv]


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint for staticrender commands."""
    parser = _build_parser()
    args = parser.parse_args(_with_default_command(list(sys.argv[1:] if argv is None else argv)))

    configure_logging(verbose=bool(args.verbose))

    if args.command == "init":
        return _run_init(parser, args)
    if args.command == "list":
        return _run_list(parser, args)
    return _run_render(parser, args)


def _load(parser: argparse.ArgumentParser, args: argparse.Namespace) -> RenderConfig:
    try:
        config = load_config(args.config)
        return config.with_overrides(
            output_dir=getattr(args, "output", None),
            websocket_port=getattr(args, "port", None),
            verbose=bool(args.verbose),
        )
    except ConfigError as exc:
        parser.exit(1, f"Configuration error: {exc}\n")


def _run_init(parser: argparse.ArgumentParser, args: argparse.Namespace) -> int:
    target = Path(args.config or DEFAULT_CONFIG_FILENAME)
    values: Dict[str, str] = {}
    if args.entry_points:
        values["entry_points_dir"] = args.entry_points
    if args.output:
        values["output_dir"] = args.output
    if args.templates:
        values["template_dir"] = args.templates
    if args.engine:
        values["template_engine"] = args.engine
    try:
        written = write_default_config(target, force=bool(args.force), **values)
    except FileExistsError as exc:
        parser.exit(1, f"{exc}\n")
    except OSError as exc:
        parser.exit(1, f"staticrender init failed: {exc}\n")
    print(f"Configuration written to {_relativize(written)}")
    return 0


def _run_list(parser: argparse.ArgumentParser, args: argparse.Namespace) -> int:
    config = _load(parser, args)
    if config.verbose:
        configure_logging(verbose=True)
    orchestrator = Orchestrator(config)
    try:
        entry_points = orchestrator.discover()
    except (FileNotFoundError, NotADirectoryError) as exc:
        parser.exit(1, f"{exc}\n")
    if not entry_points:
        print(f"No entry points found in {_relativize(config.entry_points_dir)}")
        return 0
    for entry in entry_points:
        print(entry.path)
    return 0


def _run_render(parser: argparse.ArgumentParser, args: argparse.Namespace) -> int:
    config = _load(parser, args)
    if config.verbose:
        configure_logging(verbose=True)

    notifier = None
    if args.live_reload:
        if args.watch:
            notifier = LiveReloadServer(config.watch.websocket_port)
        else:
            logger.warning("--live-reload has no effect without --watch")

    orchestrator = Orchestrator(config, notifier=notifier)
    with orchestrator.handle_signals():
        try:
            if args.files:
                entry_points = orchestrator.resolve_entry_points(args.files)
                logger.info("Rendering %d file(s)...", len(entry_points))
                orchestrator.rebuild_graph()
                report = orchestrator.render(entry.path for entry in entry_points)
            else:
                logger.info("Rendering all entry points...")
                report = orchestrator.render_all()
        except NoEntryPointsError as exc:
            parser.exit(1, f"{exc}\n")
        except (FileNotFoundError, NotADirectoryError) as exc:
            parser.exit(1, f"{exc}\n")

        if orchestrator.stop_requested:
            orchestrator.shutdown()
            return report.exit_code
        if not args.watch:
            return report.exit_code

        try:
            orchestrator.start_watch()
        except RuntimeError as exc:
            orchestrator.shutdown()
            parser.exit(1, f"staticrender watch failed: {exc}\n")
        if notifier is not None:
            logger.info("Live reload enabled on port %d", config.watch.websocket_port)
        logger.info("Watching for changes... Press Ctrl+C to stop.")
        orchestrator.run_until_interrupted()
    return 0


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
