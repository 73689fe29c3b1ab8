import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from depscope.__version__ import __version__
from depscope.build import detect_provider
from depscope.config import OutputFormat, load_settings
from depscope.core.audit import AuditTask, write_module_index
from depscope.core.finder import DependenciesFinder
from depscope.errors import ConfigurationError, DepscopeError, VulnerabilitiesDetected


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="depscope", description="Dependency vulnerability audit.")
    parser.add_argument("--version", action="version", version=f"depscope {__version__}")
    parser.add_argument("-C", "--directory", type=Path, default=Path("."), help="project directory")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")

    commands = parser.add_subparsers(dest="command")

    audit = commands.add_parser("audit", help="audit the project dependencies")
    audit.add_argument(
        "-f", "--format", choices=[f.value for f in OutputFormat], help="override the configured output format"
    )
    audit.add_argument("--show-all", action="store_true", default=None, help="also list safe dependencies")

    commands.add_parser("index", help="write the module index of every module")
    commands.add_parser("browse", help="interactive dependency browser (default)")
    return parser


def load_project(directory: Path):
    provider = detect_provider(str(directory))
    if not provider:
        raise ConfigurationError(f"No supported project found in {directory}")
    logging.debug(f"Provider: {provider.name}")
    return provider.load(directory)


def run_audit(args) -> None:
    project, table = load_project(args.directory)
    settings = load_settings(table)
    if args.format:
        settings.output_format = OutputFormat(args.format)
    if args.show_all:
        settings.show_all = True
    if not settings.output_dir.is_absolute():
        settings.output_dir = args.directory / settings.output_dir
    AuditTask(project, settings, console=Console(no_color=not settings.color_enabled, highlight=False)).audit()


def run_index(args) -> None:
    project, table = load_project(args.directory)
    settings = load_settings(table)
    modules = DependenciesFinder().find_modules(
        project,
        settings.all_scopes,
        settings.modules_excluded,
        settings.variant_attributes,
        settings.exclude_compile_only,
    )
    for path in write_module_index(modules):
        logging.info(f"Module index written to {path}")


def main(argv=None) -> int:
    """ Entrypoint when is installed via pip """
    args = build_parser().parse_args(argv)

    if args.command in (None, "browse"):
        from depscope.app import DepscopeApp

        app = DepscopeApp(args.directory)
        app.run()
        return 0

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )

    try:
        if args.command == "audit":
            run_audit(args)
        else:
            run_index(args)
    except VulnerabilitiesDetected as e:
        logging.error(str(e))
        return 1
    except DepscopeError as e:
        logging.error(str(e))
        return 2
    return 0


# Development mode
if __name__ == "__main__":
    sys.exit(main())
