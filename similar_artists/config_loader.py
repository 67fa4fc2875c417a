"""
Configuration Loader - Manages YAML configuration and environment variables
"""
import yaml
import os
from typing import Any, Dict, List


class Config:
    """Configuration manager for the similar-artists playlist tool"""

    def __init__(self, config_path: str = "config.yaml"):
        self.config_path = config_path
        self.config = self._load_config()
        self._validate_config()

    def _load_config(self) -> dict:
        """Load configuration from YAML file"""
        if not os.path.exists(self.config_path):
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        with open(self.config_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Configuration root must be a mapping: {self.config_path}")
        return data

    def _validate_config(self):
        """Validate required configuration fields"""
        required_fields = [
            ('library', 'database_path', None),
            ('lastfm', 'api_key', 'LASTFM_API_KEY'),
        ]

        for section, field, env_var in required_fields:
            if env_var and os.getenv(env_var):
                continue
            if section not in self.config or not isinstance(self.config[section], dict):
                raise ValueError(f"Missing configuration section: {section}")
            if field not in self.config[section]:
                raise ValueError(f"Missing configuration field: {section}.{field}")

            # Check if value is placeholder or empty
            value = self.config[section][field]
            if not value or str(value).startswith('YOUR_'):
                raise ValueError(f"Please set {section}.{field} in {self.config_path}")

        ratio = self.get('discovery', 'blend_ratio', 0.5)
        if not isinstance(ratio, (int, float)) or isinstance(ratio, bool) or not 0.0 <= ratio <= 1.0:
            raise ValueError(f"discovery.blend_ratio must be a number within [0, 1], got {ratio!r}")

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """
        Get configuration value

        Args:
            section: Configuration section
            key: Configuration key
            default: Default value if not found

        Returns:
            Configuration value or default
        """
        section_data = self.config.get(section)
        if not isinstance(section_data, dict):
            return default
        return section_data.get(key, default)

    def get_section(self, section: str) -> Dict[str, Any]:
        """Get a whole section as a dict (empty when absent)"""
        section_data = self.config.get(section)
        return dict(section_data) if isinstance(section_data, dict) else {}

    @property
    def library_database_path(self) -> str:
        """Get library database path"""
        return self.config['library']['database_path']

    @property
    def library_ready_timeout(self) -> float:
        """Seconds to wait for the library index before a run fails"""
        return float(self.get('library', 'ready_timeout_seconds', 5.0))

    @property
    def lastfm_api_key(self) -> str:
        """Get Last.FM API key (with environment variable override)"""
        return os.getenv('LASTFM_API_KEY') or self.get('lastfm', 'api_key', '')

    @property
    def lastfm_calls_per_second(self) -> float:
        """Client-side pacing for Last.FM requests"""
        return float(self.get('lastfm', 'calls_per_second', 5.0))

    @property
    def lastfm_timeout(self) -> float:
        """Last.FM request timeout in seconds"""
        return float(self.get('lastfm', 'timeout_seconds', 10))

    @property
    def reccobeats_base_url(self) -> str:
        """ReccoBeats API root (with environment variable override)"""
        return os.getenv('RECCOBEATS_BASE_URL') or self.get('reccobeats', 'base_url', 'https://api.reccobeats.com/v1')

    @property
    def reccobeats_timeout(self) -> float:
        """ReccoBeats request timeout in seconds"""
        return float(self.get('reccobeats', 'timeout_seconds', 10))

    @property
    def export_path(self) -> str:
        """Directory playlists are written to"""
        return self.get('output', 'export_path', 'playlists')

    @property
    def queue_path(self) -> str:
        """File backing the playback queue"""
        return self.get('output', 'queue_path', os.path.join(self.export_path, 'Now Playing.m3u8'))

    @property
    def cache_clear_on_run(self) -> bool:
        """Clear the provider cache at the start of every run"""
        return bool(self.get('cache', 'clear_on_run', False))

    @property
    def missed_results_enabled(self) -> bool:
        """Record candidates that had no library match"""
        return bool(self.get('missed_results', 'enabled', True))

    @property
    def missed_results_path(self) -> str:
        """Database used for missed results"""
        return self.get('missed_results', 'database_path', 'data/missed_results.db')

    @property
    def missed_results_max(self) -> int:
        """Maximum number of missed results kept"""
        return int(self.get('missed_results', 'max_results', 10000))

    @property
    def auto_mode_enabled(self) -> bool:
        """Whether the auto-queue listener should be started"""
        return bool(self.get('auto_mode', 'enabled', False))

    @property
    def ignore_prefixes(self) -> List[str]:
        """Artist prefixes the library sorts without ("The")"""
        prefixes = self.get('discovery', 'ignore_prefixes', ['The'])
        if isinstance(prefixes, str):
            prefixes = [p.strip() for p in prefixes.split(';')]
        return [p for p in prefixes if p]

    @property
    def log_level(self) -> str:
        """Get logging level"""
        return self.get('logging', 'level', 'INFO')

    @property
    def log_file(self) -> str:
        """Get log file path"""
        return self.get('logging', 'file', 'logs/similar_artists.log')
