# tablesync/logging_config.py
import logging.config
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

def _ensure_log_dirs(config: Dict[str, Any]) -> None:
    """Create parent directories for file handlers"""
    for handler in config.get('handlers', {}).values():
        filename = handler.get('filename')
        if filename:
            Path(filename).parent.mkdir(parents=True, exist_ok=True)

def setup_logging(config_path: Optional[str] = None, config: Optional[Dict[str, Any]] = None):
    """Setup logging configuration"""
    if config is None:
        if config_path is None:
            config_path = Path(__file__).parent / 'config' / 'default_config.yaml'

        with open(config_path) as f:
            config = yaml.safe_load(f)

    _ensure_log_dirs(config['logging'])
    logging.config.dictConfig(config['logging'])

    return logging.getLogger(__name__)
