# src/scenario_player/core/config.py
"""Configuration parsing and validation."""

from __future__ import annotations

import yaml
from pathlib import Path
from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field, asdict
import logging
import os

logger = logging.getLogger(__name__)


@dataclass
class PlayerConfig:
    """Configuration for scenario scheduling."""
    concurrency: int = 1
    endpoint: Optional[str] = None
    reset_cookies: bool = False

    def validate(self) -> None:
        """Validate player configuration."""
        if isinstance(self.concurrency, bool) or not isinstance(self.concurrency, int):
            raise ValueError(f"concurrency must be an integer: {self.concurrency!r}")

        if self.concurrency <= 0:
            raise ValueError(f"concurrency must be positive: {self.concurrency}")

        if self.endpoint is not None and not self.endpoint.startswith(("http://", "https://")):
            raise ValueError(f"endpoint must be an http(s) URL: {self.endpoint}")


@dataclass
class HttpConfig:
    """Configuration for the HTTP client of each pool slot."""
    timeout: float = 30.0
    connect_timeout: float = 10.0
    verify_ssl: bool = True
    follow_redirects: bool = True
    user_agent: str = "scenario-player/0.1"
    max_connections_per_slot: int = 10

    def validate(self) -> None:
        """Validate HTTP configuration."""
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive: {self.timeout}")

        if self.connect_timeout <= 0:
            raise ValueError(f"connect_timeout must be positive: {self.connect_timeout}")

        if self.max_connections_per_slot <= 0:
            raise ValueError(f"max_connections_per_slot must be positive: {self.max_connections_per_slot}")


@dataclass
class MonitoringConfig:
    """Monitoring and extension configuration."""
    extensions: List[str] = field(default_factory=list)
    prometheus_pushgateway: Optional[str] = None
    job_name: str = "scenario_player"

    def validate(self) -> None:
        """Validate monitoring configuration."""
        if not isinstance(self.extensions, list):
            raise ValueError(f"extensions must be a list: {self.extensions!r}")

        if not self.job_name:
            raise ValueError("job_name cannot be empty")


@dataclass
class OutputConfig:
    """Output configuration."""
    values_path: Optional[Path] = None
    results_path: Optional[Path] = None
    log_level: str = "INFO"

    def validate(self) -> None:
        """Validate output configuration."""
        if self.log_level not in ["DEBUG", "INFO", "WARNING", "ERROR"]:
            raise ValueError(f"Invalid log level: {self.log_level}")


def _copy_list(value: Any) -> Any:
    return list(value) if isinstance(value, list) else value


class Config:
    """Main configuration container."""

    SECTIONS = ("player", "http", "monitoring", "output")

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration."""
        self.config_path = config_path
        self.data: Dict[str, Any] = {}

        # Initialize with defaults
        self.player = PlayerConfig()
        self.http = HttpConfig()
        self.monitoring = MonitoringConfig()
        self.output = OutputConfig()

        if config_path:
            self.load()
        else:
            self._merge_env_vars()
            self._update_from_dict()
            self.validate()

    def load(self) -> None:
        """Load configuration from file."""
        if not self.config_path:
            raise ValueError("No configuration path specified")

        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        logger.info(f"Loading configuration from {self.config_path}")

        try:
            with open(self.config_path, 'r') as f:
                self.data = yaml.safe_load(f) or {}

            if not isinstance(self.data, dict):
                raise ValueError(f"Configuration root must be a mapping: {self.config_path}")

            self._check_sections()

            # Environment wins over file values
            self._merge_env_vars()
            self._update_from_dict()
            self.validate()

            logger.info("Configuration loaded successfully")

        except yaml.YAMLError as e:
            logger.error(f"Failed to parse YAML configuration: {e}")
            raise
        except Exception as e:
            logger.error(f"Failed to load configuration: {e}")
            raise

    def _check_sections(self) -> None:
        """Reject known sections that are not mappings; empty ones become {}."""
        for section in self.SECTIONS:
            if section not in self.data:
                continue
            if self.data[section] is None:
                self.data[section] = {}
            elif not isinstance(self.data[section], dict):
                raise ValueError(f"Configuration section '{section}' must be a mapping, "
                                 f"got {type(self.data[section]).__name__}")

    def _merge_env_vars(self) -> None:
        """Merge environment variables into configuration."""
        if "SCENARIO_PLAYER_CONCURRENCY" in os.environ:
            self.data.setdefault("player", {})["concurrency"] = int(os.environ["SCENARIO_PLAYER_CONCURRENCY"])
        if "SCENARIO_PLAYER_ENDPOINT" in os.environ:
            self.data.setdefault("player", {})["endpoint"] = os.environ["SCENARIO_PLAYER_ENDPOINT"]

        if "SCENARIO_PLAYER_TIMEOUT" in os.environ:
            self.data.setdefault("http", {})["timeout"] = float(os.environ["SCENARIO_PLAYER_TIMEOUT"])

        if "SCENARIO_PLAYER_PUSHGATEWAY" in os.environ:
            self.data.setdefault("monitoring", {})["prometheus_pushgateway"] = os.environ["SCENARIO_PLAYER_PUSHGATEWAY"]

        if "SCENARIO_PLAYER_LOG_LEVEL" in os.environ:
            self.data.setdefault("output", {})["log_level"] = os.environ["SCENARIO_PLAYER_LOG_LEVEL"]

    def _update_from_dict(self) -> None:
        """Update configuration objects from loaded data."""
        for section in self.data:
            if section not in self.SECTIONS:
                logger.warning(f"Ignoring unknown configuration section: {section}")

        # Update Player config
        if "player" in self.data:
            player_data = self.data["player"] or {}
            self.player = PlayerConfig(
                concurrency=player_data.get("concurrency", self.player.concurrency),
                endpoint=player_data.get("endpoint", self.player.endpoint),
                reset_cookies=player_data.get("reset_cookies", self.player.reset_cookies),
            )

        # Update HTTP config
        if "http" in self.data:
            http_data = self.data["http"] or {}
            self.http = HttpConfig(
                timeout=http_data.get("timeout", self.http.timeout),
                connect_timeout=http_data.get("connect_timeout", self.http.connect_timeout),
                verify_ssl=http_data.get("verify_ssl", self.http.verify_ssl),
                follow_redirects=http_data.get("follow_redirects", self.http.follow_redirects),
                user_agent=http_data.get("user_agent", self.http.user_agent),
                max_connections_per_slot=http_data.get("max_connections_per_slot", self.http.max_connections_per_slot),
            )

        # Update Monitoring config
        if "monitoring" in self.data:
            monitoring_data = self.data["monitoring"] or {}
            self.monitoring = MonitoringConfig(
                extensions=_copy_list(monitoring_data.get("extensions", self.monitoring.extensions)),
                prometheus_pushgateway=monitoring_data.get("prometheus_pushgateway", self.monitoring.prometheus_pushgateway),
                job_name=monitoring_data.get("job_name", self.monitoring.job_name),
            )

        # Update Output config
        if "output" in self.data:
            output_data = self.data["output"] or {}
            values_path = output_data.get("values_path", self.output.values_path)
            results_path = output_data.get("results_path", self.output.results_path)
            self.output = OutputConfig(
                values_path=Path(values_path) if values_path else None,
                results_path=Path(results_path) if results_path else None,
                log_level=output_data.get("log_level", self.output.log_level),
            )

    def validate(self) -> None:
        """Validate all configuration sections."""
        try:
            self.player.validate()
            self.http.validate()
            self.monitoring.validate()
            self.output.validate()
        except Exception as e:
            logger.error(f"Configuration validation failed: {e}")
            raise

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        output = asdict(self.output)
        for key in ("values_path", "results_path"):
            if output[key] is not None:
                output[key] = str(output[key])

        return {
            "player": asdict(self.player),
            "http": asdict(self.http),
            "monitoring": asdict(self.monitoring),
            "output": output,
        }
