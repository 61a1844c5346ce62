"""Unit tests for configuration loading and validation."""

import pytest
import yaml

from castmatch.utils.config import (
    AppConfig,
    EmbeddingConfig,
    ReferenceConfig,
    StorageConfig,
    apply_env_overrides,
    get_config,
    load_config,
    reset_config,
)
from castmatch.utils.exceptions import ConfigurationError


class TestSectionDefaults:
    """Test section defaults and validation."""

    def test_reference_defaults(self):
        config = ReferenceConfig()
        assert config.folders is None
        assert config.max_samples_per_group == 40
        assert config.concurrency == 2

    def test_concurrency_bounds(self):
        with pytest.raises(ValueError):
            ReferenceConfig(concurrency=0)

    def test_embedding_defaults(self):
        config = EmbeddingConfig()
        assert config.backends == ["hf_pipeline", "hf_models"]
        assert config.max_attempts == 3
        assert config.backoff_seconds == 0.4

    def test_empty_backends_rejected(self):
        with pytest.raises(ValueError, match="At least one"):
            EmbeddingConfig(backends=[])

    def test_storage_credentials(self):
        assert not StorageConfig(cloud_name="demo").has_credentials
        assert StorageConfig(cloud_name="demo", api_key="k", api_secret="s").has_credentials

    def test_log_level_normalized(self):
        assert AppConfig(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(ValueError):
            AppConfig(log_level="LOUD")

    def test_default_admin_token(self):
        assert AppConfig().auth.admin_token == "CHANGE_ME"

    def test_cors_allows_any_origin_by_default(self):
        assert AppConfig().cors_origins == ["*"]


class TestEnvOverrides:
    """Test environment variable overlay."""

    def test_credentials_and_limits(self):
        env = {
            "EVALUATOR_API_KEY": "eval-key",
            "ADMIN_TOKEN": "adm",
            "CLOUDINARY_CLOUD_NAME": "demo",
            "CLOUDINARY_API_KEY": "k",
            "CLOUDINARY_API_SECRET": "s",
            "HF_MODEL": "Xenova/clip-vit-base-patch32",
            "MAX_REFS_PER_FOLDER": "12",
            "MAX_EMBEDS_CONCURRENCY": "4",
            "PORT": "8080",
        }

        config = AppConfig.model_validate(apply_env_overrides({}, env))

        assert config.auth.evaluator_api_key == "eval-key"
        assert config.auth.admin_token == "adm"
        assert config.storage.has_credentials
        assert config.embedding.model == "Xenova/clip-vit-base-patch32"
        assert config.references.max_samples_per_group == 12
        assert config.references.concurrency == 4
        assert config.port == 8080

    def test_reference_folders_json(self):
        env = {"REFERENCE_FOLDERS_JSON": '["Reference Female A", "Reference Male B"]'}
        config = AppConfig.model_validate(apply_env_overrides({}, env))
        assert config.references.folders == ["Reference Female A", "Reference Male B"]

    @pytest.mark.parametrize("raw", ["[not json", '{"a": 1}', "[1, 2]"])
    def test_invalid_reference_folders(self, raw):
        with pytest.raises(ConfigurationError):
            apply_env_overrides({}, {"REFERENCE_FOLDERS_JSON": raw})

    def test_cors_origins_list(self):
        env = {"CORS_ORIGINS": "https://a.example.com, https://b.example.com"}
        config = AppConfig.model_validate(apply_env_overrides({}, env))
        assert config.cors_origins == ["https://a.example.com", "https://b.example.com"]

    def test_backend_list(self):
        env = {"EMBEDDING_BACKENDS": "hf_models, local"}
        config = AppConfig.model_validate(apply_env_overrides({}, env))
        assert config.embedding.backends == ["hf_models", "local"]

    @pytest.mark.parametrize("value,expected", [("1", True), ("0", False), ("true", False)])
    def test_light_mode(self, value, expected):
        config = AppConfig.model_validate(apply_env_overrides({}, {"LIGHT_MODE": value}))
        assert config.light_mode is expected

    def test_blank_values_ignored(self):
        config = AppConfig.model_validate(apply_env_overrides({}, {"ADMIN_TOKEN": ""}))
        assert config.auth.admin_token == "CHANGE_ME"


class TestLoadConfig:
    """Test file loading and the singleton."""

    def test_load_from_yaml(self, tmp_path):
        """Test loading configuration from YAML file."""
        config_data = {
            "auth": {"admin_token": "from-file"},
            "references": {"max_samples_per_group": 10},
            "matcher": {"max_photos": 3},
            "log_level": "WARNING",
        }
        config_file = tmp_path / "config.yaml"
        config_file.write_text(yaml.dump(config_data))

        config = load_config(config_file, environ={})

        assert config.auth.admin_token == "from-file"
        assert config.references.max_samples_per_group == 10
        assert config.matcher.max_photos == 3
        assert config.log_level == "WARNING"

    def test_env_wins_over_file(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(yaml.dump({"auth": {"admin_token": "from-file"}}))

        config = load_config(config_file, environ={"ADMIN_TOKEN": "from-env"})

        assert config.auth.admin_token == "from-env"

    def test_config_path_from_env(self, tmp_path):
        config_file = tmp_path / "other.yaml"
        config_file.write_text(yaml.dump({"port": 9000}))

        config = load_config(environ={"CASTMATCH_CONFIG": str(config_file)})

        assert config.port == 9000

    def test_missing_file(self):
        """Test error handling for missing config file."""
        with pytest.raises(FileNotFoundError):
            load_config("/nonexistent/config.yaml", environ={})

    def test_invalid_values(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(yaml.dump({"references": {"concurrency": 0}}))
        with pytest.raises(ValueError):
            load_config(config_file, environ={})

    def test_singleton(self, tmp_path, monkeypatch):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(yaml.dump({"port": 9100}))
        monkeypatch.setenv("CASTMATCH_CONFIG", str(config_file))
        monkeypatch.delenv("PORT", raising=False)
        reset_config()
        try:
            first = get_config()
            second = get_config()
            assert first is second
            assert first.port == 9100
            assert get_config(reload=True) is not first
        finally:
            reset_config()
