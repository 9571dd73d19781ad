import json
from pathlib import Path

from quotadeck.config import Config, validate_schema, CONFIG_SCHEMA


def test_config_load_empty(tmp_path):
    config = Config(config_dir=tmp_path)
    assert config.data == {}
    assert config.preferences_db_path == tmp_path / "preferences.db"


def test_config_defaults(tmp_path):
    config = Config(config_dir=tmp_path)
    assert config.base_url == "http://localhost:8080"
    assert config.password is None
    assert config.refresh_interval == 60
    assert config.request_timeout == 10
    assert config.show_exhausted is True
    assert config.show_hidden_models is False


def test_config_save(tmp_path):
    config = Config(config_dir=tmp_path)
    config.data["baseUrl"] = "http://proxy:9000"
    config.save()

    config_file = tmp_path / "config.json"
    assert config_file.exists()

    with open(config_file, "r") as f:
        data = json.load(f)
    assert data["baseUrl"] == "http://proxy:9000"


def test_config_values(tmp_path):
    (tmp_path / "config.json").write_text(
        json.dumps(
            {
                "baseUrl": "http://proxy:9000/",
                "refreshInterval": 0,
                "showExhausted": False,
                "showHiddenModels": True,
                "preferencesDbPath": "~/prefs/quotadeck.db",
            }
        )
    )
    config = Config(config_dir=tmp_path)

    assert config.base_url == "http://proxy:9000"
    assert config.refresh_interval == 0
    assert config.show_exhausted is False
    assert config.show_hidden_models is True
    assert config.preferences_db_path == Path("~/prefs/quotadeck.db").expanduser()


def test_config_invalid_refresh_interval(tmp_path):
    (tmp_path / "config.json").write_text(json.dumps({"refreshInterval": "soon"}))
    config = Config(config_dir=tmp_path)
    assert config.refresh_interval == 60


def test_config_load_invalid_json(tmp_path):
    config_file = tmp_path / "config.json"
    config_file.write_text("invalid json")

    config = Config(config_dir=tmp_path)
    assert config.data == {}


def test_config_default_paths():
    config = Config()
    assert ".config/quotadeck" in str(config.config_dir)


def test_validate_schema():
    assert validate_schema({"refreshInterval": 30}, CONFIG_SCHEMA, "config.json")
    assert not validate_schema({"refreshInterval": -1}, CONFIG_SCHEMA, "config.json")
