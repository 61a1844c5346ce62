"""Configuration management system using Pydantic v2 and YAML.

This module provides type-safe configuration loading with validation
for the CastMatch service. Values come from an optional YAML file and
are then overridden by recognised environment variables.
"""

import json
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from .exceptions import ConfigurationError


VALID_BACKENDS = ["hf_pipeline", "hf_models", "local"]


class AuthConfig(BaseModel):
    """Credentials checked at the HTTP boundary."""

    evaluator_api_key: Optional[str] = Field(default=None, description="Bearer key for /evaluate")
    admin_token: str = Field(default="CHANGE_ME", description="Token for /admin endpoints")


class StorageConfig(BaseModel):
    """Configuration for the Cloudinary reference storage."""

    cloud_name: str = Field(default="", description="Cloudinary cloud name")
    api_key: str = Field(default="", description="Cloudinary Admin API key")
    api_secret: str = Field(default="", description="Cloudinary Admin API secret")
    max_results: int = Field(default=500, ge=1, le=500, description="Max assets returned per folder search")
    folder_prefix: str = Field(default="reference", description="Reserved word reference folders start with")
    timeout: int = Field(default=30, ge=1, description="Request timeout in seconds")

    @property
    def has_credentials(self) -> bool:
        """True when all three Cloudinary credentials are set."""
        return bool(self.cloud_name and self.api_key and self.api_secret)


class EmbeddingConfig(BaseModel):
    """Configuration for the embedding provider and its backends."""

    model: str = Field(default="openai/clip-vit-base-patch32", description="Embedding model identifier")
    api_token: Optional[str] = Field(default=None, description="Bearer token for hosted inference")
    api_base: str = Field(default="https://api-inference.huggingface.co", description="Hosted inference base URL")
    backends: list[str] = Field(
        default_factory=lambda: ["hf_pipeline", "hf_models"],
        description="Backends to try, in preference order",
    )
    max_attempts: int = Field(default=3, ge=1, description="Tries per backend on transient errors")
    backoff_seconds: float = Field(default=0.4, ge=0.0, description="Backoff base, multiplied by attempt number")
    timeout: int = Field(default=60, ge=1, description="Per-request timeout in seconds")
    wait_for_model: bool = Field(default=True, description="Ask the hosted backend to wait for a cold model")
    memoize: bool = Field(default=True, description="Memoize vectors per source URL for the process lifetime")
    image_width: int = Field(default=512, ge=64, description="Width requested from on-the-fly image transforms")

    @field_validator('backends')
    @classmethod
    def validate_backends(cls, v: list[str]) -> list[str]:
        """Ensure at least one known backend is configured."""
        if not v:
            raise ValueError("At least one embedding backend is required")
        unknown = [b for b in v if b not in VALID_BACKENDS]
        if unknown:
            raise ValueError(f"Unknown embedding backends {unknown}. Choose from: {VALID_BACKENDS}")
        return v


class ReferenceConfig(BaseModel):
    """Configuration for the reference cache build."""

    folders: Optional[list[str]] = Field(default=None, description="Explicit reference folders (bypasses discovery)")
    max_samples_per_group: int = Field(default=40, ge=1, description="Images embedded per reference group")
    concurrency: int = Field(default=2, ge=1, le=16, description="Embedding workers per group")
    load_on_startup: bool = Field(default=True, description="Build the cache when the service starts")


class MatcherConfig(BaseModel):
    """Configuration for submission similarity matching."""

    max_photos: int = Field(default=5, ge=1, description="Submission photos embedded per evaluation")


class AppConfig(BaseModel):
    """Root configuration model containing all sub-configurations."""

    auth: AuthConfig = Field(default_factory=AuthConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    references: ReferenceConfig = Field(default_factory=ReferenceConfig)
    matcher: MatcherConfig = Field(default_factory=MatcherConfig)
    light_mode: bool = Field(default=False, description="Serve mock evaluations without loading models")
    log_level: str = Field(default="INFO", description="Logging level")
    log_dir: Optional[str] = Field(default=None, description="Directory for rotating log files (default: logs/)")
    port: int = Field(default=10000, ge=1, le=65535, description="HTTP port")
    cors_origins: list[str] = Field(default_factory=lambda: ["*"], description="Origins allowed to call the API from a browser")

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Choose from: {valid_levels}")
        return v_upper


# Environment variable -> (section, field); section None means a root field
ENV_OVERRIDES: dict[str, tuple[Optional[str], str]] = {
    "EVALUATOR_API_KEY": ("auth", "evaluator_api_key"),
    "ADMIN_TOKEN": ("auth", "admin_token"),
    "CLOUDINARY_CLOUD_NAME": ("storage", "cloud_name"),
    "CLOUDINARY_API_KEY": ("storage", "api_key"),
    "CLOUDINARY_API_SECRET": ("storage", "api_secret"),
    "HF_MODEL": ("embedding", "model"),
    "HF_API_TOKEN": ("embedding", "api_token"),
    "MAX_REFS_PER_FOLDER": ("references", "max_samples_per_group"),
    "MAX_EMBEDS_CONCURRENCY": ("references", "concurrency"),
    "LOG_LEVEL": (None, "log_level"),
    "CASTMATCH_LOG_DIR": (None, "log_dir"),
    "PORT": (None, "port"),
}


def _parse_reference_folders(raw: str) -> list[str]:
    """Parse the REFERENCE_FOLDERS_JSON value into a list of folder names."""
    try:
        folders = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            "Invalid REFERENCE_FOLDERS_JSON",
            context={"value": raw[:200], "error": str(e)},
        ) from e
    if not isinstance(folders, list) or not all(isinstance(f, str) for f in folders):
        raise ConfigurationError(
            "REFERENCE_FOLDERS_JSON must be a JSON array of folder names",
            context={"value": raw[:200]},
        )
    return folders


def apply_env_overrides(config_dict: dict[str, Any], environ: Optional[dict[str, str]] = None) -> dict[str, Any]:
    """Overlay recognised environment variables onto a raw config dict.

    Args:
        config_dict: Raw configuration (as loaded from YAML)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        The same dict, updated in place

    Raises:
        ConfigurationError: If REFERENCE_FOLDERS_JSON is not a JSON list of strings
    """
    env = os.environ if environ is None else environ

    for var, (section, field) in ENV_OVERRIDES.items():
        value = env.get(var)
        if value is None or value == "":
            continue
        target = config_dict if section is None else config_dict.setdefault(section, {})
        target[field] = value

    folders_raw = env.get("REFERENCE_FOLDERS_JSON", "")
    if folders_raw.strip():
        config_dict.setdefault("references", {})["folders"] = _parse_reference_folders(folders_raw)

    origins_raw = env.get("CORS_ORIGINS", "")
    if origins_raw.strip():
        config_dict["cors_origins"] = [o.strip() for o in origins_raw.split(",") if o.strip()]

    backends_raw = env.get("EMBEDDING_BACKENDS", "")
    if backends_raw.strip():
        config_dict.setdefault("embedding", {})["backends"] = [
            b.strip() for b in backends_raw.split(",") if b.strip()
        ]

    if "LIGHT_MODE" in env:
        config_dict["light_mode"] = env["LIGHT_MODE"] == "1"

    return config_dict


# Singleton pattern for configuration
_config: Optional[AppConfig] = None


def load_config(
    config_path: Optional[Path | str] = None,
    environ: Optional[dict[str, str]] = None,
) -> AppConfig:
    """Load and validate configuration from YAML and the environment.

    The YAML file is optional: an explicit path must exist, while the
    CASTMATCH_CONFIG variable and the default config/config.yaml are only
    read when present. Environment variables always win over the file.

    Args:
        config_path: Path to configuration file
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated AppConfig instance

    Raises:
        FileNotFoundError: If an explicit config file doesn't exist
        ConfigurationError: If an environment value cannot be parsed
        ValueError: If configuration is invalid
    """
    env = os.environ if environ is None else environ

    if config_path is not None:
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
    elif env.get('CASTMATCH_CONFIG'):
        config_path = Path(env['CASTMATCH_CONFIG'])
    else:
        project_root = Path(__file__).parent.parent.parent
        config_path = project_root / "config" / "config.yaml"

    config_dict: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path, 'r', encoding='utf-8') as f:
            config_dict = yaml.safe_load(f) or {}

    apply_env_overrides(config_dict, env)

    return AppConfig.model_validate(config_dict)


def get_config(config_path: Optional[Path | str] = None, reload: bool = False) -> AppConfig:
    """Get configuration instance (singleton pattern).

    Args:
        config_path: Path to configuration file (only used on first call or if reload=True)
        reload: Force reload of configuration

    Returns:
        Cached or newly loaded AppConfig instance
    """
    global _config

    if _config is None or reload:
        _config = load_config(config_path)

    return _config


def reset_config() -> None:
    """Reset cached configuration (useful for testing)."""
    global _config
    _config = None
