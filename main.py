import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

import hidarishita.error as error
import hidarishita.logger as log
import hidarishita.config_io as config_io
from hidarishita.config_schema import AppConfig
from hidarishita.directory import Directory, DirectoryResolver, DirectorySnapshot
from hidarishita.drivers.slack import SlackTransport
from hidarishita.error import ConfigError, HidarishitaError
from hidarishita.mute import MuteEngine
from hidarishita.processor import EventProcessor
from hidarishita.render import Renderer
from hidarishita.supervisor import ConnectionSupervisor, SupervisorState

l = log.get_logger()


def build_processor_factory(rules: MuteEngine, use_color: bool):
    def _factory(config: AppConfig, directory: Directory) -> EventProcessor:
        resolver = DirectoryResolver(directory)
        return EventProcessor(
            rules.with_directory(directory),
            Renderer(resolver, color=use_color),
            sys.stdout,
        )
    return _factory


def cmd_convert(src: str, dst: str) -> int:
    src_path = Path(src)
    dst_path = Path(dst)

    if not src_path.is_file():
        print(f"Error: source file not found: {src_path}", file=sys.stderr)
        return 1

    try:
        data = config_io.load_config(src_path)
    except (OSError, ValueError, HidarishitaError) as e:
        print(f"Error reading {src_path}: {e}", file=sys.stderr)
        return 1

    try:
        config_io.save_config(data, dst_path)
    except (OSError, ValueError, TypeError) as e:
        print(f"Error writing {dst_path}: {e}", file=sys.stderr)
        return 1

    print(f"Converted {src_path} → {dst_path}")
    return 0


def cmd_run(config_path: str | None, no_color: bool) -> int:
    l.info("hidarishita starting…")

    try:
        config = config_io.load_app_config(Path(config_path) if config_path else None)
    except ConfigError as e:
        l.critical(str(e))
        return 1

    log.register_sensitive({config.token})
    if config.log_dir:
        l.info(f"Logging to {log.enable_file_logging(config.log_dir)}")

    if no_color:
        use_color = False
    elif config.color is not None:
        use_color = config.color
    else:
        use_color = sys.stdout.isatty()

    try:
        # Compiled once; a bad pattern fails here, before connecting
        rules = MuteEngine(config.mute, DirectorySnapshot())
    except HidarishitaError as e:
        l.critical(str(e))
        return 1

    processor_factory = build_processor_factory(rules, use_color)

    supervisor = ConnectionSupervisor(config, SlackTransport, processor_factory)
    state = supervisor.run()

    if state is SupervisorState.DEACTIVATED:
        l.error("Authentication rejected; not reconnecting.")
    else:
        l.info("hidarishita stopped.")
    return 0


def cli() -> None:
    parser = argparse.ArgumentParser(prog="hidarishita", description="Slack real-time transcript viewer")
    parser.add_argument("--config", help="Config file (default: config.{json,yaml,yml,toml} in $HIDARISHITA_DATA_PATH)")
    parser.add_argument("--no-color", action="store_true", help="Never colour the transcript")
    parser.add_argument("--verbose", action="store_true", help="Log debug output to the console")
    subparsers = parser.add_subparsers(dest="command")

    conv = subparsers.add_parser("convert", help="Convert a config file between formats (json/yaml/toml)")
    conv.add_argument("src", help="Source config file (e.g. config.yml)")
    conv.add_argument("dst", help="Destination config file (e.g. config.toml)")

    args = parser.parse_args()

    if args.command == "convert":
        sys.exit(cmd_convert(args.src, args.dst))

    load_dotenv()
    error.install_excepthook()
    if args.verbose:
        log.set_console_level(logging.DEBUG)

    sys.exit(cmd_run(args.config, args.no_color))


if __name__ == "__main__":
    cli()
