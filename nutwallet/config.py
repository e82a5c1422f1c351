"""
Wallet configuration and logging setup.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

from .mint import DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

PACKAGE_LOGGER = "nutwallet"
ENV_PREFIX = "NUTWALLET_"


@dataclass
class LogConfig:
    """Logging configuration."""
    level: str = "INFO"
    file: Optional[str] = None
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    max_size_mb: int = 10
    backup_count: int = 5


@dataclass
class WalletConfig:
    """Wallet configuration."""
    mint_url: str = ""
    request_timeout: float = DEFAULT_TIMEOUT
    verify_tls: bool = True
    log: LogConfig = field(default_factory=LogConfig)

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> WalletConfig:
        """Build from ``NUTWALLET_*`` environment variables."""
        env = os.environ if environ is None else environ
        config = cls()
        config.mint_url = env.get(ENV_PREFIX + "MINT_URL", config.mint_url)
        if ENV_PREFIX + "TIMEOUT" in env:
            config.request_timeout = float(env[ENV_PREFIX + "TIMEOUT"])
        if ENV_PREFIX + "VERIFY_TLS" in env:
            config.verify_tls = env[ENV_PREFIX + "VERIFY_TLS"].strip().lower() not in (
                "0", "false", "no", "off",
            )
        config.log.level = env.get(ENV_PREFIX + "LOG_LEVEL", config.log.level)
        config.log.file = env.get(ENV_PREFIX + "LOG_FILE", config.log.file)
        return config

    @classmethod
    def load(cls, path: Union[str, Path]) -> WalletConfig:
        """Load from a JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        log_data = data.pop("log", {})
        config = cls(**data)
        config.log = LogConfig(**log_data)
        logger.debug("loaded wallet config from %s", path)
        return config

    def save(self, path: Union[str, Path]) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(asdict(self), f, indent=2)


def setup_logging(config: Optional[LogConfig] = None) -> None:
    """
    Attach console and (optionally) rotating file handlers to the
    package logger.

    Call once at startup; repeated calls are no-ops.
    """
    if getattr(setup_logging, "_done", False):
        return
    config = config or LogConfig()
    level = getattr(logging, config.level.upper(), logging.INFO)
    fmt = logging.Formatter(config.format)
    pkg = logging.getLogger(PACKAGE_LOGGER)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(fmt)
    console_handler.setLevel(level)
    pkg.addHandler(console_handler)

    if config.file:
        file_handler = RotatingFileHandler(
            config.file,
            maxBytes=config.max_size_mb * 1024 * 1024,
            backupCount=config.backup_count,
        )
        file_handler.setFormatter(fmt)
        file_handler.setLevel(level)
        pkg.addHandler(file_handler)

    pkg.setLevel(level)
    setup_logging._done = True  # type: ignore[attr-defined]
