import os
from pathlib import Path
from typing import Any, Dict, Optional
import yaml
import logging

from ..db_sync.models import DatabaseEndpoint, SyncConfig

logger = logging.getLogger(__name__)

class ConfigLoader:
    """Handle loading and validation of configuration"""

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize config loader

        Args:
            config_path: Path to custom config file (optional)
        """
        self.config_path = config_path or self._get_default_config_path()
        self.config: Dict[str, Any] = {}

    @staticmethod
    def _get_default_config_path() -> str:
        """Get path to default config file"""
        return str(Path(__file__).parent / 'default_config.yaml')

    def load(self) -> Dict[str, Any]:
        """
        Load and validate configuration

        Returns:
            Validated configuration dictionary
        """
        try:
            with open(self.config_path, 'r') as f:
                self.config = yaml.safe_load(f) or {}

            self._validate_config()
            return self.config

        except Exception as e:
            logger.error(f"Error loading config from {self.config_path}: {str(e)}")
            raise

    def _validate_config(self):
        """Validate required configuration parameters"""
        required_sections = ['sync', 'endpoints', 'logging']

        for section in required_sections:
            if section not in self.config:
                raise ValueError(f"Missing required config section: {section}")

        for name in ('local', 'cloud'):
            endpoint = self.config['endpoints'].get(name) or {}
            if 'url' not in endpoint:
                raise ValueError(f"Missing required database URL for {name} endpoint")

        if 'version' not in self.config['logging']:
            raise ValueError("Missing required logging version")

    def update_from_env(self):
        """Update configuration from environment variables"""
        env_mappings = {
            'LOCAL_DB_URL': (('endpoints', 'local', 'url'), str),
            'CLOUD_DB_URL': (('endpoints', 'cloud', 'url'), str),
            'SYNC_DEVICE_ID': (('device_identifier',), str),
            'SYNC_MAX_RETRIES': (('sync', 'max_retries'), int),
            'LOG_LEVEL': (('logging', 'handlers', 'console', 'level'), lambda x: x.upper()),
        }

        for env_var, (path, type_conv) in env_mappings.items():
            if env_var in os.environ:
                try:
                    section = self.config
                    for key in path[:-1]:
                        section = section.setdefault(key, {})
                    section[path[-1]] = type_conv(os.environ[env_var])
                except Exception as e:
                    logger.warning(
                        f"Failed to set {env_var} config value: {str(e)}"
                    )

    def sync_config(self) -> SyncConfig:
        """Build the SyncConfig from the 'sync' section"""
        return SyncConfig(**(self.config.get('sync') or {}))

    def endpoint(self, name: str) -> DatabaseEndpoint:
        """Build a DatabaseEndpoint from the 'endpoints' section"""
        section = self.config['endpoints'][name]
        return DatabaseEndpoint(
            name=name,
            url=section['url'],
            connect_timeout=section.get('connect_timeout'),
            command_timeout=section.get('command_timeout'),
        )

    @property
    def device_identifier(self) -> Optional[str]:
        return self.config.get('device_identifier')
