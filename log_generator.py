#!/usr/bin/env python3
"""
Log Rate Generator
==================
Emit synthetic log lines at a target rate until interrupted, then report
the achieved throughput.

Usage:
    LPS=1000 python log_generator.py [options]
    python log_generator.py --rate 1000 --sink json
    python log_generator.py --config config/settings.example.yaml --duration 60

Environment Variables:
    LPS: Target lines per second (required unless --rate or a config file sets it)
    CONFIG_FILE: Path to YAML configuration file
    ES_HOSTS / ES_HOST: Elasticsearch hosts for the elasticsearch sink
    ES_USER, ES_PASSWORD, ES_API_KEY: Elasticsearch credentials
    ES_VERIFY_CERTS, ES_CA_CERTS: TLS settings
    INDEX_PREFIX: Index name prefix

Stop with Ctrl-C (SIGINT) or SIGTERM.
"""

import argparse
import logging
import os
import sys

from loggen.config import ConfigManager, setup_logging
from loggen.exceptions import ConfigError, LogGeneratorError, SinkError
from loggen.pacer import Pacer
from loggen.records import TemplateSelector
from loggen.resources import describe_usage, resource_usage
from loggen.sinks import build_sink
from loggen.timing import SignalCancelSource, schedule_cancel

logger = logging.getLogger("log_generator")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate log lines at a fixed rate",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument("-c", "--config", default=None,
                        help="Path to YAML configuration file")
    parser.add_argument("-r", "--rate", type=int, default=None,
                        help="Target lines per second (overrides LPS)")
    parser.add_argument("--tick-interval-ms", type=float, default=None,
                        help="Scheduler tick interval in milliseconds (default: 10)")
    parser.add_argument("--burst-cap", type=int, default=None,
                        help="Maximum lines emitted per tick (default: 10000)")
    parser.add_argument("--duration", type=float, default=None,
                        help="Stop after this many seconds (0 = run until interrupted)")
    parser.add_argument("--seed", type=int, default=None,
                        help="Seed for payload selection")
    parser.add_argument("--status-interval", type=float, default=None,
                        help="Seconds between progress messages (0 disables)")
    parser.add_argument("--sink", choices=["console", "json", "elasticsearch"], default=None,
                        help="Output destination (default: console)")
    parser.add_argument("--stream", choices=["stdout", "stderr"], default=None,
                        help="Stream for console and json sinks (default: stdout)")
    parser.add_argument("--log-file", default=None,
                        help="Also write diagnostic messages to this file")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Enable verbose output")
    parser.add_argument("--print-config", action="store_true",
                        help="Print the effective configuration and exit")
    return parser


def load_config(args) -> ConfigManager:
    """Load file and environment settings and apply CLI overrides."""
    config = ConfigManager(args.config or os.environ.get("CONFIG_FILE"))
    config.load()
    config.apply_overrides(
        rate=args.rate,
        tick_interval_ms=args.tick_interval_ms,
        burst_cap=args.burst_cap,
        duration=args.duration,
        seed=args.seed,
        status_interval=args.status_interval,
        sink=args.sink,
        stream=args.stream
    )
    return config


def print_config_info(config: ConfigManager, run_config) -> None:
    """Log the settings of the run about to start."""
    logger.info("=" * 60)
    logger.info("Log Generator Starting")
    logger.info("=" * 60)
    logger.info(f"Target Rate: {run_config.target_rate} lines/second")
    logger.info(f"Tick Interval: {run_config.tick_interval * 1000:g}ms")
    logger.info(f"Burst Cap: {run_config.burst_cap} lines/tick")
    logger.info(f"Sink: {config.output.sink}")
    if config.output.sink == "elasticsearch":
        logger.info(f"ES Hosts: {config.elasticsearch.hosts}")
        logger.info(f"Index Prefix: {config.elasticsearch.index_prefix}")
    if config.generator.duration:
        logger.info(f"Duration: {config.generator.duration} seconds")
    else:
        logger.info("Duration: Infinite (Ctrl+C to stop)")
    logger.info("=" * 60)


def close_sink(sink) -> None:
    """Close the sink; a failure here is logged so the run summary still gets reported."""
    try:
        sink.close()
    except (LogGeneratorError, OSError) as e:
        logger.error(f"Error closing sink: {e}")


def main(argv=None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    setup_logging(verbose=args.verbose, log_file=args.log_file)

    try:
        config = load_config(args)
        if args.print_config:
            print(config.dump(), end="")
            return 0

        is_valid, errors = config.validate()
        if not is_valid:
            for error in errors:
                logger.error(error)
            return 1

        run_config = config.run_config()
        selector = TemplateSelector(config.generator.templates, seed=config.generator.seed)
    except ConfigError as e:
        logger.error(str(e))
        return 1

    print_config_info(config, run_config)

    try:
        sink = build_sink(config)
    except SinkError as e:
        logger.error(f"Could not open sink: {e}")
        return 1

    pacer = Pacer(run_config, selector=selector)

    with SignalCancelSource() as cancel:
        timer = None
        if config.generator.duration > 0:
            timer = schedule_cancel(cancel, config.generator.duration)
        try:
            summary = pacer.run(sink, cancel)
        finally:
            if timer is not None:
                timer.cancel()
            close_sink(sink)

    logger.debug(f"Stop reason: {cancel.reason}")
    logger.info(summary.describe())
    logger.info(describe_usage(resource_usage()))
    return 0


if __name__ == "__main__":
    sys.exit(main())
