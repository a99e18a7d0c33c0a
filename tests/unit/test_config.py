"""Unit tests for TranscrifyConfig."""

from pathlib import Path

import pytest

from transcrify.config import TranscrifyConfig
from transcrify.exceptions import ConfigurationError


@pytest.mark.unit
class TestTranscrifyConfig:
    """Test cases for TranscrifyConfig."""

    def test_values_from_file(self, config_file):
        config = TranscrifyConfig(config_file)

        assert config.get('session.success_dwell_seconds') == 0.05
        assert config.get('logging.level') == 'DEBUG'

    def test_missing_values_fall_back_to_defaults(self, config_file):
        config = TranscrifyConfig(config_file)

        assert config.get('session.max_file_size_mb') == 39
        assert config.get('session.min_duration_ms') == 50
        assert config.get('groq.transcription_model') == 'whisper-large-v3'
        assert config.get('groq.purification_model') == 'llama-3.3-70b-versatile'
        assert config.get('no.such.key', 'fallback') == 'fallback'

    def test_relative_paths_resolve_against_config_dir(self, config_file):
        config = TranscrifyConfig(config_file)
        config_dir = Path(config_file).parent

        assert config.get_data_directory() == (config_dir / 'data').absolute()
        assert config.get('logging.file_path') == str(config_dir / 'data/logs/test.log')
        assert config.get_data_file('state_file') == (config_dir / 'data').absolute() / 'state.json'

    def test_default_paths_resolve_against_config_dir(self, temp_data_dir):
        config_path = Path(temp_data_dir) / "minimal.yaml"
        config_path.write_text("limits:\n  hourly_seconds: 60\n", encoding='utf-8')
        config = TranscrifyConfig(config_path)
        config_dir = config_path.parent

        assert config.get_data_directory() == (config_dir / 'data').absolute()
        assert config.get('logging.file_path') == str(config_dir / 'data/logs/transcrify.log')
        assert config.get('logging.level') == 'INFO'

    def test_empty_sections_use_default_paths(self, temp_data_dir):
        config_path = Path(temp_data_dir) / "sparse.yaml"
        config_path.write_text("storage:\nlogging:\nlimits:\n  daily_seconds: 100\n", encoding='utf-8')
        config = TranscrifyConfig(config_path)
        config_dir = config_path.parent

        assert config.get_data_file('state_file') == (config_dir / 'data').absolute() / 'state.json'
        assert config.get('logging.file_path') == str(config_dir / 'data/logs/transcrify.log')

    def test_set(self, config_file):
        config = TranscrifyConfig(config_file)
        config.set('limits.hourly_seconds', 60)
        config.set('new.section.key', True)

        assert config.get('limits.hourly_seconds') == 60
        assert config.get('new.section.key') is True

    def test_missing_file(self, temp_data_dir):
        with pytest.raises(ConfigurationError, match="not found"):
            TranscrifyConfig(Path(temp_data_dir) / "missing.yaml")

    def test_empty_file(self, temp_data_dir):
        path = Path(temp_data_dir) / "empty.yaml"
        path.write_text("", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="empty"):
            TranscrifyConfig(path)

    def test_invalid_yaml(self, temp_data_dir):
        path = Path(temp_data_dir) / "broken.yaml"
        path.write_text("storage: [unclosed", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            TranscrifyConfig(path)

    def test_non_mapping_root(self, temp_data_dir):
        path = Path(temp_data_dir) / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="mapping"):
            TranscrifyConfig(path)
