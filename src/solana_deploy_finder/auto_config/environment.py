import os
import logging
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv, find_dotenv

from solana_deploy_finder import constants

logger = logging.getLogger(__name__)

DEFAULT_CACHE_PATH = Path.home() / ".cache" / "solana-deploy-finder" / "deployments.json"


def load_env_file(env_file_path: Optional[str] = None) -> bool:
    """
    Load environment variables from a .env file using python-dotenv.

    Args:
        env_file_path: Optional path to the .env file. If None, searches for a
                       '.env' file from the current working directory upwards.

    Returns:
        True if a .env file was found and loaded, False otherwise.
    """
    env_path = env_file_path or find_dotenv(usecwd=True)
    if not env_path or not Path(env_path).exists():
        logger.debug("No .env file found to load.")
        return False

    was_loaded = load_dotenv(dotenv_path=env_path, override=False)
    if not was_loaded:
        logger.debug(f"Environment variables NOT LOADED from: {env_path}")
    return was_loaded


class Config:
    def __init__(self, load_env: bool = True) -> None:
        if load_env:
            load_env_file()

        # Solana RPC Configuration
        self.solana_rpc_url = self._get_env_var('SOLANA_RPC_URL', default=constants.DEFAULT_RPC_URL)
        self.rpc_timeout = self._get_float('RPC_TIMEOUT_SECONDS', 30.0)

        # Pacing Configuration
        self.request_interval = self._get_float('REQUEST_INTERVAL_SECONDS', constants.REQUEST_INTERVAL_SECONDS)
        self.max_retries = self._get_int('MAX_RETRIES', constants.MAX_RETRIES)
        # Backoff starts from the inter-batch interval unless told otherwise
        self.backoff_base_delay = self._get_float('BACKOFF_BASE_DELAY', self.request_interval)

        # Cache Configuration
        cache_path = self._get_env_var('DEPLOYMENT_CACHE_PATH')
        self.cache_path = Path(cache_path).expanduser() if cache_path else DEFAULT_CACHE_PATH

        # Logging Configuration
        log_level_str = self._get_env_var('LOG_LEVEL', default='WARNING').upper()
        level_map = {
            'DEBUG': logging.DEBUG,
            'INFO': logging.INFO,
            'WARNING': logging.WARNING,
            'ERROR': logging.ERROR,
            'CRITICAL': logging.CRITICAL
        }
        if log_level_str not in level_map:
            logger.warning(f"Invalid LOG_LEVEL: {log_level_str}. Using WARNING.")
            self.log_level = logging.WARNING
        else:
            self.log_level = level_map[log_level_str]

        log_dir = self._get_env_var('LOG_DIR')
        self.log_dir: Optional[Path] = Path(log_dir).expanduser() if log_dir else None

        self._validate_config()

    def _get_env_var(self, key: str, default: str = '') -> str:
        value = os.environ.get(key)
        return value if value is not None else default

    def _get_float(self, key: str, default: float) -> float:
        raw = self._get_env_var(key)
        if not raw:
            return default
        try:
            return float(raw)
        except ValueError:
            logger.warning(f"Invalid {key} value {raw!r}. Using default: {default}")
            return default

    def _get_int(self, key: str, default: int) -> int:
        raw = self._get_env_var(key)
        if not raw:
            return default
        try:
            return int(raw)
        except ValueError:
            logger.warning(f"Invalid {key} value {raw!r}. Using default: {default}")
            return default

    def _validate_config(self) -> None:
        """Validate configuration values with fallbacks for invalid values."""
        if not self.solana_rpc_url.startswith('http'):
            logger.warning(f"Invalid SOLANA_RPC_URL: {self._mask_url(self.solana_rpc_url)}. Using default public RPC endpoint.")
            self.solana_rpc_url = constants.DEFAULT_RPC_URL

        if self.request_interval < 0:
            logger.warning(f"Invalid REQUEST_INTERVAL_SECONDS: {self.request_interval}. Using default.")
            self.request_interval = constants.REQUEST_INTERVAL_SECONDS

        if self.max_retries <= 0:
            logger.warning(f"Invalid MAX_RETRIES: {self.max_retries}. Using default of {constants.MAX_RETRIES}.")
            self.max_retries = constants.MAX_RETRIES

        if self.backoff_base_delay < 0:
            logger.warning(f"Invalid BACKOFF_BASE_DELAY: {self.backoff_base_delay}. Using request interval.")
            self.backoff_base_delay = self.request_interval

        if self.rpc_timeout <= 0:
            self.rpc_timeout = 30.0

    def is_public_rpc(self) -> bool:
        return 'api.mainnet-beta.solana.com' in self.solana_rpc_url

    def _mask_url(self, url: str) -> str:
        """Mask sensitive parts of URL for display."""
        if not url:
            return "None"

        # last part might contain API key
        parts = url.split('/')
        if len(parts) >= 4:
            for i in range(len(parts) - 1, -1, -1):
                if parts[i] and len(parts[i]) > 10:
                    parts[i] = '*' * 8
                    break

        return '/'.join(parts)

    def describe(self) -> list[str]:
        """Human readable configuration lines (excluding sensitive data)."""
        return [
            f"RPC URL: {self._mask_url(self.solana_rpc_url)}",
            f"Request interval: {self.request_interval}s",
            f"Max retries: {self.max_retries} (base delay {self.backoff_base_delay}s)",
            f"Cache: {self.cache_path}",
            f"Log level: {logging.getLevelName(self.log_level)}",
        ]

    def log_config(self) -> None:
        if self.is_public_rpc():
            logger.warning("Using public Solana RPC. Consider using a dedicated RPC provider for better performance.")
        for line in self.describe():
            logger.info(line)


_config: Optional[Config] = None


def get_config() -> Config:
    """Get the process-wide configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = Config()
    return _config

