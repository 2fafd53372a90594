"""
Unit tests for configuration loader module.
"""

import logging
from pathlib import Path
from unittest.mock import mock_open, patch

import pytest

import autoui.config_loader as config_loader
from autoui.config_loader import (
    configure_logging,
    deep_merge,
    get_config_value,
    get_default_config,
    get_logging_level,
    load_config,
    reload_config,
)


@pytest.fixture(autouse=True)
def reset_config_cache():
    config_loader._config_cache = None
    yield
    config_loader._config_cache = None


class TestDeepMerge:
    """Test cases for deep_merge function."""

    def test_deep_merge_simple_dicts(self):
        """Test deep merging of simple dictionaries."""
        base = {'a': 1, 'b': 2}
        update = {'b': 3, 'c': 4}

        result = deep_merge(base, update)

        assert result == {'a': 1, 'b': 3, 'c': 4}
        # Ensure original dicts are not modified
        assert base == {'a': 1, 'b': 2}
        assert update == {'b': 3, 'c': 4}

    def test_deep_merge_nested_dicts(self):
        """Test deep merging of nested dictionaries."""
        base = {'table': {'page_size': 10, 'page_size_options': [10, 25]}, 'ui': {'locale': 'en'}}
        update = {'table': {'page_size': 25}, 'ui': {'page_title': "Catalogue"}}

        result = deep_merge(base, update)

        assert result == {
            'table': {'page_size': 25, 'page_size_options': [10, 25]},
            'ui': {'locale': 'en', 'page_title': "Catalogue"},
        }

    def test_deep_merge_non_dict_values(self):
        """Lists are replaced, not merged."""
        result = deep_merge({'a': [1, 2, 3]}, {'a': [4]})

        assert result == {'a': [4]}


class TestGetDefaultConfig:
    """Test cases for get_default_config function."""

    def test_get_default_config_structure(self):
        """Test that default config has expected structure."""
        config = get_default_config()

        for section in ['app', 'ui', 'table', 'schema', 'logging']:
            assert section in config

    def test_get_default_config_values(self):
        """Test that default config has expected values."""
        config = get_default_config()

        assert config['ui']['locale'] == 'en'
        assert config['table']['page_size'] == 10
        assert config['table']['page_size_options'] == [10, 25, 50, 100]
        assert config['logging']['level'] == 'INFO'


class TestLoadConfig:
    """Test cases for load_config function."""

    def test_load_config_file_not_exists(self):
        """Test loading config when file doesn't exist."""
        with patch('pathlib.Path.exists', return_value=False):
            config = load_config(Path('nonexistent.yaml'))

        assert config == get_default_config()

    def test_load_config_valid_file(self):
        """Test loading config from valid YAML file."""
        yaml_content = """
ui:
  locale: "de"
table:
  page_size: 25
"""

        with patch('builtins.open', mock_open(read_data=yaml_content)):
            with patch('pathlib.Path.exists', return_value=True):
                config = load_config(Path('test.yaml'))

        assert config['ui']['locale'] == 'de'
        assert config['table']['page_size'] == 25
        # Should have defaults for missing values
        assert config['table']['page_size_options'] == [10, 25, 50, 100]
        assert config['ui']['page_title'] == 'Zopio Auto-UI'

    def test_load_config_from_tmp_file(self, tmp_path):
        """Test loading a real file from disk."""
        path = tmp_path / "config.yaml"
        path.write_text("logging:\n  level: DEBUG\n", encoding='utf-8')

        config = load_config(path)

        assert config['logging']['level'] == 'DEBUG'

    def test_load_config_invalid_yaml(self):
        """Test loading config with invalid YAML."""
        with patch('builtins.open', mock_open(read_data="invalid: yaml: content: [")):
            with patch('pathlib.Path.exists', return_value=True):
                config = load_config(Path('invalid.yaml'))

        assert config == get_default_config()

    def test_load_config_empty_file(self):
        """Test loading config from empty file."""
        with patch('builtins.open', mock_open(read_data="")):
            with patch('pathlib.Path.exists', return_value=True):
                config = load_config(Path('empty.yaml'))

        assert config == get_default_config()

    def test_load_config_non_dict_content(self):
        """Test loading config with non-dictionary content."""
        with patch('builtins.open', mock_open(read_data="- item1\n- item2\n")):
            with patch('pathlib.Path.exists', return_value=True):
                config = load_config(Path('list.yaml'))

        assert config == get_default_config()

    def test_load_config_io_error(self):
        """Test loading config when IO error occurs."""
        with patch('builtins.open', side_effect=IOError("Permission denied")):
            with patch('pathlib.Path.exists', return_value=True):
                config = load_config(Path('protected.yaml'))

        assert config == get_default_config()


class TestConfigValues:
    """Test cases for cached config lookups."""

    def test_get_config_value(self):
        with patch.object(config_loader, 'load_config',
                          return_value={'table': {'page_size': 50}, 'ui': 'not a section'}):
            assert get_config_value('table', 'page_size') == 50
            assert get_config_value('table', 'missing', 'fallback') == 'fallback'
            assert get_config_value('ui', 'locale', 'en') == 'en'
            assert get_config_value('nope', 'key') is None

    def test_config_is_cached_until_reload(self):
        with patch.object(config_loader, 'load_config', return_value={'app': {}}) as mock_load:
            get_config_value('app', 'name')
            get_config_value('app', 'version')
            assert mock_load.call_count == 1

            reload_config()
            assert mock_load.call_count == 2


class TestLogging:
    """Test cases for logging configuration."""

    def test_get_logging_level(self):
        assert get_logging_level('debug') == logging.DEBUG
        assert get_logging_level('WARNING') == logging.WARNING
        assert get_logging_level('verbose') == logging.INFO

    def test_configure_logging_uses_config(self):
        with patch.object(config_loader, 'load_config',
                          return_value={'logging': {'level': 'ERROR', 'format': '%(message)s'}}):
            with patch('logging.basicConfig') as mock_basic:
                level = configure_logging()

        assert level == logging.ERROR
        mock_basic.assert_called_once_with(level=logging.ERROR, format='%(message)s')
