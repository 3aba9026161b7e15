"""
Configuration management for LogSift.
Handles loading, validation, and access to configuration settings.
"""

import os
import json
import yaml
from pathlib import Path
from typing import Any, Dict, List, Optional
from dataclasses import asdict, dataclass, field


@dataclass
class ParserConfig:
    """Format parser settings."""
    sniff_lines: int = 20
    max_file_size: int = 1024 * 1024 * 1024  # 1GB
    text_encoding: str = "utf-8"
    max_description_length: int = 500


@dataclass
class CorrelationConfig:
    """Correlation engine settings."""
    keys: List[str] = field(default_factory=lambda: ["ip"])
    deep_inspection_keys: List[str] = field(default_factory=lambda: ["user", "host"])
    time_window: Optional[int] = None  # seconds; None disables windowed splitting
    time_buckets: bool = False
    min_group_size: int = 1


@dataclass
class AnalysisConfig:
    """Orchestration settings."""
    max_workers: int = 4
    file_timeout: float = 300.0  # seconds
    enable_forensics: bool = True


@dataclass
class LoggingConfig:
    """Logging settings."""
    level: str = "INFO"
    log_file: Optional[str] = None
    json_format: bool = False
    security_log: Optional[str] = None


class Config:
    """
    Central configuration manager for LogSift.

    Settings are applied in order, later sources winning:
    - dataclass defaults
    - the first configuration file found in DEFAULT_PATHS (YAML or JSON)
    - LOGSIFT_* environment variables
    - load_file() / set() calls
    """

    _instance = None
    _config_file: Optional[Path] = None

    SECTIONS = ("parsers", "correlation", "analysis", "logging")

    DEFAULT_PATHS = (
        Path("logsift.yaml"),
        Path("logsift.yml"),
        Path("logsift.json"),
        Path.home() / ".logsift" / "config.yaml",
        Path("/etc/logsift/config.yaml"),
    )

    ENV_VARIABLES = {
        "LOGSIFT_SNIFF_LINES": ("parsers", "sniff_lines"),
        "LOGSIFT_MAX_FILE_SIZE": ("parsers", "max_file_size"),
        "LOGSIFT_TEXT_ENCODING": ("parsers", "text_encoding"),
        "LOGSIFT_CORRELATION_KEYS": ("correlation", "keys"),
        "LOGSIFT_CORRELATION_WINDOW": ("correlation", "time_window"),
        "LOGSIFT_MAX_WORKERS": ("analysis", "max_workers"),
        "LOGSIFT_FILE_TIMEOUT": ("analysis", "file_timeout"),
        "LOGSIFT_ENABLE_FORENSICS": ("analysis", "enable_forensics"),
        "LOGSIFT_LOG_LEVEL": ("logging", "level"),
        "LOGSIFT_LOG_FILE": ("logging", "log_file"),
        "LOGSIFT_LOG_JSON": ("logging", "json_format"),
        "LOGSIFT_SECURITY_LOG": ("logging", "security_log"),
    }

    LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self.parsers = ParserConfig()
        self.correlation = CorrelationConfig()
        self.analysis = AnalysisConfig()
        self.logging = LoggingConfig()

        # Settings outside the known sections, kept for callers
        self._custom: Dict[str, Any] = {}

        for path in self.DEFAULT_PATHS:
            if path.exists():
                self.load_file(path)
                break

        for env_var, (section, key) in self.ENV_VARIABLES.items():
            value = os.environ.get(env_var)
            if value:
                self.set(section, key, value)

        self.validate()
        self._initialized = True

    @classmethod
    def reset(cls) -> None:
        """Discard the shared instance so the next access reloads defaults."""
        cls._instance = None
        cls._config_file = None

    def load_file(self, path: Path) -> None:
        """Merge settings from a YAML or JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        content = path.read_text()
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(content)
        elif path.suffix == ".json":
            data = json.loads(content)
        else:
            raise ValueError(f"Unsupported configuration format: {path.suffix}")

        if data and not isinstance(data, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping")

        for name, values in (data or {}).items():
            if name in self.SECTIONS and isinstance(values, dict):
                for key, value in values.items():
                    self.set(name, key, value)
            else:
                self._custom[name] = values

        self._config_file = path
        self.validate()

    def set(self, section: str, key: str, value: Any) -> None:
        """Set a configuration value."""
        section_obj = getattr(self, section, None) if section in self.SECTIONS else None
        if section_obj is not None and hasattr(section_obj, key):
            # Environment values arrive as strings
            if isinstance(value, str):
                value = self._coerce(getattr(section_obj, key), value)
            setattr(section_obj, key, value)
        else:
            self._custom.setdefault(section, {})[key] = value

    @staticmethod
    def _coerce(current: Any, value: str) -> Any:
        """Convert a string to the type of the current setting."""
        if isinstance(current, bool):
            return value.strip().lower() in ("1", "true", "yes", "on")
        if isinstance(current, int):
            return int(value)
        if isinstance(current, float):
            return float(value)
        if isinstance(current, list):
            return [v.strip() for v in value.split(",") if v.strip()]
        if current is None and value.strip().isdigit():
            return int(value)
        return value

    def validate(self) -> None:
        """Reject settings the pipeline cannot run with."""
        problems = []
        if self.parsers.sniff_lines < 1:
            problems.append("parsers.sniff_lines must be at least 1")
        if self.parsers.max_file_size < 1:
            problems.append("parsers.max_file_size must be positive")
        if not self.correlation.keys:
            problems.append("correlation.keys must name at least one attribute")
        if self.correlation.time_window is not None and self.correlation.time_window <= 0:
            problems.append("correlation.time_window must be positive or unset")
        if self.analysis.max_workers < 1:
            problems.append("analysis.max_workers must be at least 1")
        if self.analysis.file_timeout <= 0:
            problems.append("analysis.file_timeout must be positive")
        if str(self.logging.level).upper() not in self.LOG_LEVELS:
            problems.append(f"logging.level must be one of {', '.join(self.LOG_LEVELS)}")

        if problems:
            raise ValueError("Invalid configuration: " + "; ".join(problems))

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """Get a configuration value."""
        section_obj = getattr(self, section, None) if section in self.SECTIONS else None
        if section_obj is not None and hasattr(section_obj, key):
            return getattr(section_obj, key)
        return self._custom.get(section, {}).get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        """Export configuration as a plain dictionary."""
        data = {name: asdict(getattr(self, name)) for name in self.SECTIONS}
        data.update(self._custom)
        return data

    def save(self, path: Optional[Path] = None) -> None:
        """Save current configuration to file."""
        path = Path(path or self._config_file or "logsift.yaml")
        path.parent.mkdir(parents=True, exist_ok=True)

        if path.suffix in (".yaml", ".yml"):
            content = yaml.safe_dump(self.to_dict(), default_flow_style=False, sort_keys=False)
        else:
            content = json.dumps(self.to_dict(), indent=2)

        path.write_text(content)


def get_config() -> Config:
    """Get the global configuration instance."""
    return Config()
