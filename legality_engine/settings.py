"""
Service settings.

Loaded from environment variables. Regulatory parameters never live here;
they are rule documents in the rules folder.
"""

import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .rule_config import RULES_DIR

logger = logging.getLogger("uvicorn.error")


@dataclass(frozen=True)
class Settings:
    """Legality service settings"""
    rules_dir: Path
    default_regime: str
    log_level: str

    @classmethod
    def from_env(cls) -> 'Settings':
        """Load settings from environment"""
        return cls(
            rules_dir=Path(os.environ.get('LEGALITY_RULES_DIR', str(RULES_DIR))),
            default_regime=os.environ.get('LEGALITY_DEFAULT_REGIME', 'faa_part117'),
            log_level=os.environ.get('LEGALITY_LOG_LEVEL', 'INFO').upper(),
        )

    def validate(self) -> list:
        """Validate settings and return list of issues"""
        issues = []
        if not self.rules_dir.is_dir():
            issues.append(f"rules folder {self.rules_dir} does not exist")
        if logging.getLevelName(self.log_level) == f"Level {self.log_level}":
            issues.append(f"unknown log level {self.log_level}, using INFO")
        return issues

    @property
    def numeric_log_level(self) -> int:
        level = logging.getLevelName(self.log_level)
        return level if isinstance(level, int) else logging.INFO


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the settings singleton"""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
        for issue in _settings.validate():
            logger.warning(f"Settings: {issue}")
        logger.info(f"Settings loaded - rules: {_settings.rules_dir}, default regime: {_settings.default_regime}")
    return _settings


def reload_settings() -> Settings:
    """Force reload settings from environment"""
    global _settings
    _settings = None
    return get_settings()
