import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError

from x12_config import ConfigNode

logger = logging.getLogger(__name__)


class ConfigManager:
    """
    Loads loop configurations from JSON files.
    Each `*.json` file in the base directory holds one ConfigNode tree and is
    addressed by its file name (e.g. "835.5010.json").
    """

    def __init__(self, config_base_path: str = "src/configs"):
        self.config_base_path = Path(config_base_path)
        self._configs: Dict[str, ConfigNode] = {}
        self._load_configs()

    def _load_configs(self):
        """Load every config file from the config directory."""
        if not self.config_base_path.exists():
            logger.warning(f"Config base path does not exist: {self.config_base_path}")
            return

        logger.info(f"Loading X12 loop configs from: {self.config_base_path}")

        for config_file in sorted(self.config_base_path.glob("*.json")):
            try:
                with open(config_file, 'r') as f:
                    config_data = json.load(f)
                config = ConfigNode.model_validate(config_data)
            except (OSError, json.JSONDecodeError, ValidationError) as e:
                logger.error(f"Failed to load config {config_file.name}: {e}")
                continue
            self._configs[config_file.name] = config
            logger.info(f"Loaded config: {config_file.name}")

    def get_config(self, config_name: str) -> Optional[ConfigNode]:
        """
        Get a config by file name.

        Args:
            config_name: Name of the config file (e.g., "835.5010.json")

        Returns:
            ConfigNode or None if not found
        """
        config = self._configs.get(config_name)
        if config is None:
            logger.error(f"Config not found: {config_name}")
        return config

    def list_configs(self) -> List[str]:
        """List available config names."""
        return list(self._configs.keys())

    def reload_configs(self):
        """Reload all configs from the filesystem."""
        self._configs.clear()
        self._load_configs()
