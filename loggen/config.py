"""
Configuration Manager for the Log Generator
===========================================
Loads generator settings from an optional YAML file, applies environment
variables and command-line overrides, and builds the immutable RunConfig
used by the pacer.

Precedence: command line > environment > configuration file > defaults.
"""

import os
import sys
import yaml
import logging
from pathlib import Path
from typing import Dict, Any, List, Mapping, Optional, Tuple
from dataclasses import dataclass, field

from .exceptions import ConfigError
from .records import LOG_LINES

DEFAULT_TICK_INTERVAL = 0.01
DEFAULT_BURST_CAP = 10000

VALID_SINKS = ['console', 'json', 'elasticsearch']
VALID_STREAMS = ['stdout', 'stderr']


def parse_rate(value: Any) -> int:
    """
    Parse a target rate (lines per second) from the environment or CLI.

    Raises:
        ConfigError: if the value is missing, not a number or not positive.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ConfigError("LPS env variable not set")
    if isinstance(value, bool):
        raise ConfigError(f"LPS env variable is not a number: {value!r}")
    if isinstance(value, float) and not value.is_integer():
        raise ConfigError(f"LPS env variable is not a number: {value!r}")

    try:
        rate = int(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError):
        raise ConfigError(f"LPS env variable is not a number: {value!r}") from None

    if rate <= 0:
        raise ConfigError(f"LPS env variable must be positive number, got {rate}")
    return rate


def _to_int(name: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None


def _to_float(name: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number, got {value!r}") from None


def _to_seed(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"seed must be an integer, got {value!r}")
    return value


def _to_templates(value: Any) -> List[str]:
    if not isinstance(value, list) or not all(isinstance(line, str) for line in value):
        raise ConfigError(f"templates must be a list of strings, got {value!r}")
    return value


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.lower() in ('true', '1', 'yes', 'on')
    return bool(value)


@dataclass(frozen=True)
class RunConfig:
    """Immutable settings for one generator run."""
    target_rate: int
    tick_interval: float = DEFAULT_TICK_INTERVAL
    burst_cap: int = DEFAULT_BURST_CAP

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Raise ConfigError unless rate, tick interval and burst cap are usable."""
        if isinstance(self.target_rate, bool) or not isinstance(self.target_rate, int):
            raise ConfigError(f"Target rate must be an integer, got {self.target_rate!r}")
        if self.target_rate <= 0:
            raise ConfigError(f"Target rate must be positive, got {self.target_rate}")
        if not self.tick_interval > 0:
            raise ConfigError(f"Tick interval must be positive, got {self.tick_interval!r}")
        if isinstance(self.burst_cap, bool) or not isinstance(self.burst_cap, int) or self.burst_cap <= 0:
            raise ConfigError(f"Burst cap must be a positive integer, got {self.burst_cap!r}")


@dataclass
class GeneratorConfig:
    """Pacing and payload settings."""
    rate: Any = None
    tick_interval_ms: float = DEFAULT_TICK_INTERVAL * 1000
    burst_cap: int = DEFAULT_BURST_CAP
    duration: float = 0
    seed: Optional[int] = None
    status_interval: float = 10.0
    templates: List[str] = field(default_factory=lambda: list(LOG_LINES))


@dataclass
class OutputConfig:
    """Where generated lines go."""
    sink: str = "console"
    stream: str = "stdout"


@dataclass
class ElasticsearchConfig:
    """Elasticsearch connection configuration."""
    hosts: List[str] = field(default_factory=lambda: ["https://localhost:9200"])
    username: str = "elastic"
    password: str = ""
    api_key: str = ""
    verify_certs: bool = True
    ca_certs: str = ""
    index_prefix: str = "loggen"
    batch_size: int = 500
    timeout: int = 120
    max_retries: int = 3


class ConfigManager:
    """
    Manages configuration loading and validation for the log generator.
    """

    def __init__(self, config_path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None):
        """
        Initialize the configuration manager.

        Args:
            config_path: Optional path to a YAML configuration file.
            environ: Environment to read overrides from. Defaults to os.environ.
        """
        self.config_path = Path(config_path) if config_path else None
        self.environ = os.environ if environ is None else environ
        self.raw_config: Dict[str, Any] = {}
        self.generator = GeneratorConfig()
        self.output = OutputConfig()
        self.elasticsearch = ElasticsearchConfig()
        self.logger = logging.getLogger(__name__)

    def load(self) -> "ConfigManager":
        """
        Load the configuration file (if any) and apply environment variables.

        Raises:
            ConfigError: if the file is missing or cannot be parsed.
        """
        if self.config_path is not None:
            if not self.config_path.exists():
                raise ConfigError(f"Configuration file not found: {self.config_path}")

            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    self.raw_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Error parsing configuration file: {e}") from e

            if not isinstance(self.raw_config, dict):
                raise ConfigError(f"Configuration file must contain a mapping: {self.config_path}")

            self._parse_generator_config()
            self._parse_output_config()
            self._parse_elasticsearch_config()
            self.logger.info(f"Configuration loaded from {self.config_path}")

        self._apply_environment()
        return self

    def _section(self, name: str) -> Dict[str, Any]:
        section = self.raw_config.get(name) or {}
        if not isinstance(section, dict):
            raise ConfigError(f"Configuration section '{name}' must be a mapping")
        return section

    def _parse_generator_config(self):
        """Parse generator configuration section."""
        gen_config = self._section('generator')
        self.generator = GeneratorConfig(
            rate=gen_config.get('rate', self.generator.rate),
            tick_interval_ms=_to_float('tick_interval_ms', gen_config.get('tick_interval_ms', self.generator.tick_interval_ms)),
            burst_cap=_to_int('burst_cap', gen_config.get('burst_cap', self.generator.burst_cap)),
            duration=_to_float('duration', gen_config.get('duration', self.generator.duration)),
            seed=_to_seed(gen_config.get('seed', self.generator.seed)),
            status_interval=_to_float('status_interval', gen_config.get('status_interval', self.generator.status_interval)),
            templates=_to_templates(gen_config.get('templates', self.generator.templates))
        )

    def _parse_output_config(self):
        """Parse output configuration section."""
        output_config = self._section('output')
        self.output = OutputConfig(
            sink=output_config.get('sink', self.output.sink),
            stream=output_config.get('stream', self.output.stream)
        )

    def _parse_elasticsearch_config(self):
        """Parse Elasticsearch configuration section."""
        es_config = self._section('elasticsearch')
        hosts = es_config.get('hosts', self.elasticsearch.hosts)
        if isinstance(hosts, str):
            hosts = [hosts]
        self.elasticsearch = ElasticsearchConfig(
            hosts=hosts,
            username=es_config.get('username', self.elasticsearch.username),
            password=es_config.get('password', self.elasticsearch.password),
            api_key=es_config.get('api_key', self.elasticsearch.api_key),
            verify_certs=_to_bool(es_config.get('verify_certs', self.elasticsearch.verify_certs)),
            ca_certs=es_config.get('ca_certs', self.elasticsearch.ca_certs),
            index_prefix=es_config.get('index_prefix', self.elasticsearch.index_prefix),
            batch_size=_to_int('batch_size', es_config.get('batch_size', self.elasticsearch.batch_size)),
            timeout=_to_int('timeout', es_config.get('timeout', self.elasticsearch.timeout)),
            max_retries=_to_int('max_retries', es_config.get('max_retries', self.elasticsearch.max_retries))
        )

    def _apply_environment(self):
        """Apply environment variable overrides."""
        env = self.environ

        # The rate is kept raw here and parsed in run_config()
        if 'LPS' in env:
            self.generator.rate = env['LPS']

        if env.get('ES_HOSTS'):
            self.elasticsearch.hosts = [h.strip() for h in env['ES_HOSTS'].split(',') if h.strip()]
        elif env.get('ES_HOST'):
            self.elasticsearch.hosts = [env['ES_HOST']]

        if env.get('ES_USER'):
            self.elasticsearch.username = env['ES_USER']
        if env.get('ES_PASSWORD'):
            self.elasticsearch.password = env['ES_PASSWORD']
        if env.get('ES_API_KEY'):
            self.elasticsearch.api_key = env['ES_API_KEY']
        if env.get('ES_VERIFY_CERTS'):
            self.elasticsearch.verify_certs = _to_bool(env['ES_VERIFY_CERTS'])
        if env.get('ES_CA_CERTS'):
            self.elasticsearch.ca_certs = env['ES_CA_CERTS']
        if env.get('INDEX_PREFIX'):
            self.elasticsearch.index_prefix = env['INDEX_PREFIX']

    def apply_overrides(self, **overrides) -> None:
        """
        Apply command-line overrides. ``None`` values are ignored.

        Accepted keys: rate, tick_interval_ms, burst_cap, duration, seed,
        status_interval, sink, stream.
        """
        for key in ('rate', 'tick_interval_ms', 'burst_cap', 'duration', 'seed', 'status_interval'):
            if overrides.get(key) is not None:
                setattr(self.generator, key, overrides[key])
        for key in ('sink', 'stream'):
            if overrides.get(key) is not None:
                setattr(self.output, key, overrides[key])

    def run_config(self) -> RunConfig:
        """
        Build the RunConfig for the pacer.

        Raises:
            ConfigError: if the rate, tick interval or burst cap is invalid.
        """
        return RunConfig(
            target_rate=parse_rate(self.generator.rate),
            tick_interval=_to_float('tick_interval_ms', self.generator.tick_interval_ms) / 1000.0,
            burst_cap=_to_int('burst_cap', self.generator.burst_cap)
        )

    def validate(self) -> Tuple[bool, List[str]]:
        """
        Validate the current configuration.

        Returns:
            Tuple of (is_valid, list of error messages)
        """
        errors = []

        try:
            self.run_config()
        except ConfigError as e:
            errors.append(str(e))

        try:
            _to_seed(self.generator.seed)
        except ConfigError as e:
            errors.append(str(e))

        try:
            if not _to_templates(self.generator.templates):
                errors.append("At least one log line template must be configured")
        except ConfigError as e:
            errors.append(str(e))

        if self.generator.duration < 0:
            errors.append("Duration must not be negative")

        if self.output.sink not in VALID_SINKS:
            errors.append(f"Invalid sink. Must be one of: {VALID_SINKS}")

        if self.output.stream not in VALID_STREAMS:
            errors.append(f"Invalid output stream. Must be one of: {VALID_STREAMS}")

        if self.output.sink == 'elasticsearch':
            if not self.elasticsearch.hosts:
                errors.append("At least one Elasticsearch host must be configured")
            if self.elasticsearch.batch_size <= 0:
                errors.append("Elasticsearch batch size must be positive")

        return (len(errors) == 0, errors)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert configuration to dictionary. Credentials are left out.
        """
        return {
            'generator': {
                'rate': self.generator.rate,
                'tick_interval_ms': self.generator.tick_interval_ms,
                'burst_cap': self.generator.burst_cap,
                'duration': self.generator.duration,
                'seed': self.generator.seed,
                'status_interval': self.generator.status_interval,
                'templates': list(self.generator.templates)
            },
            'output': {
                'sink': self.output.sink,
                'stream': self.output.stream
            },
            'elasticsearch': {
                'hosts': list(self.elasticsearch.hosts),
                'username': self.elasticsearch.username,
                'verify_certs': self.elasticsearch.verify_certs,
                'ca_certs': self.elasticsearch.ca_certs,
                'index_prefix': self.elasticsearch.index_prefix,
                'batch_size': self.elasticsearch.batch_size,
                'timeout': self.elasticsearch.timeout,
                'max_retries': self.elasticsearch.max_retries
            }
        }

    def dump(self) -> str:
        """Render the effective configuration as YAML."""
        return yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False)


DIAGNOSTIC_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Client libraries that log every request at INFO
NOISY_LOGGERS = ['elastic_transport', 'elasticsearch', 'urllib3']


def setup_logging(verbose: bool = False, log_file: Optional[str] = None) -> None:
    """
    Send diagnostic messages to stderr, and to ``log_file`` if given.

    Generated lines go through the ``loggen.output`` logger with their own
    handler, so stdout carries nothing but generated traffic. Per-request
    logs of the Elasticsearch client are only shown when ``verbose``.
    """
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding='utf-8'))

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=DIAGNOSTIC_FORMAT,
        handlers=handlers
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)
