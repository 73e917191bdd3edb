"""
Configuration management for grammar-cache
"""

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)


@dataclass
class GrammarConfig:
    """Grammar discovery and transform configuration"""
    root: str = "grammars"
    depth: int = 2
    language: str = "fr-FR"
    hotword: str = "SARAH"
    watch: bool = True


@dataclass
class ServerConfig:
    """Control server configuration"""
    socket_path: str = "grammar-cache.sock"


@dataclass
class Config:
    """Main configuration container"""
    grammar: GrammarConfig
    server: ServerConfig
    config_path: Path

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Config":
        """
        Load configuration from YAML file

        Args:
            config_path: Path to config file. If None, searches for config.yml
                        in the project root (relative to package location).

        Returns:
            Config object

        Raises:
            SystemExit: If config file not found or invalid
        """
        if config_path is not None:
            resolved_path = config_path
        else:
            package_dir = Path(__file__).parent
            project_root = package_dir.parent
            resolved_path = project_root / "config.yml"

        if not resolved_path.exists():
            logger.error(f"Config file not found: {resolved_path}")
            logger.error("Please copy config.example.yml to config.yml and customize it.")
            sys.exit(1)

        config_data = _load_yaml(resolved_path)
        try:
            config = cls.from_dict(config_data, resolved_path.parent)
        except (TypeError, AttributeError) as e:
            # unknown keys, or a document or section that is not a mapping
            logger.error(f"Invalid config file {resolved_path}: {e}")
            sys.exit(1)

        logger.info(f"Loaded config from {resolved_path}")
        return config

    @classmethod
    def from_dict(cls, data: Dict[str, Any], config_path: Path) -> "Config":
        """Build config from parsed YAML sections"""
        return cls(
            grammar=GrammarConfig(**(data.get("grammar") or {})),
            server=ServerConfig(**(data.get("server") or {})),
            config_path=config_path,
        )

    def _resolve(self, value: str) -> Path:
        path = Path(value).expanduser()
        if path.is_absolute():
            return path
        return self.config_path / path

    def get_grammar_root(self) -> Path:
        """Get the absolute path to the grammar directory"""
        return self._resolve(self.grammar.root)

    def get_socket_path(self) -> Path:
        """Get the absolute path to the socket file"""
        return self._resolve(self.server.socket_path)


def _load_yaml(path: Path) -> Dict[str, Any]:
    """Load YAML file and return as dict"""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if data else {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Error loading config file {path}: {e}")
        sys.exit(1)
