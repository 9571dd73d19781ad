import json
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from quotadeck.cli import main
from quotadeck.client import ApiError

SNAPSHOT = {
    "accounts": [
        {
            "email": "alice@example.com",
            "enabled": True,
            "status": "ok",
            "limits": {
                "claude-opus-4-5": {"remainingFraction": 0.8, "resetTime": None},
                "gemini-3-flash": {"remainingFraction": 0.4, "resetTime": None},
            },
        }
    ],
    "models": ["claude-opus-4-5", "gemini-3-flash"],
    "modelConfig": {},
}

HISTORY = {
    "2024-01-15T09:00:00Z": {
        "claude": {"opus-4-5": 10, "_subtotal": 10},
        "gemini": {"3-flash": 2, "_subtotal": 2},
        "_total": 12,
    }
}


@pytest.fixture
def mock_config(tmp_path):
    with patch("quotadeck.cli.Config") as mock_config_cls:
        config = mock_config_cls.return_value
        config.base_url = "http://localhost:8080"
        config.password = None
        config.request_timeout = 10
        config.refresh_interval = 60
        config.show_exhausted = True
        config.show_hidden_models = False
        config.preferences_db_path = tmp_path / "prefs.db"
        yield config


@pytest.fixture
def mock_client():
    with patch("quotadeck.cli.DashboardClient") as mock_client_cls:
        client = MagicMock()
        client.fetch_snapshot.return_value = (SNAPSHOT, None)
        client.fetch_history.return_value = (HISTORY, None)
        client.update_model_config.return_value = None
        mock_client_cls.return_value = client
        yield client


def test_cli_version():
    runner = CliRunner()
    result = runner.invoke(main, ["--version"])
    assert result.exit_code == 0
    assert "quotadeck" in result.output


def test_cli_quota_table(mock_config, mock_client):
    runner = CliRunner()
    result = runner.invoke(main, [], env={"COLUMNS": "200"})
    assert result.exit_code == 0
    assert "claude-opus-4-5" in result.output
    assert "gemini-3-flash" in result.output
    mock_client.fetch_history.assert_not_called()


def test_cli_json(mock_config, mock_client):
    runner = CliRunner()
    result = runner.invoke(main, ["--json", "--family", "gemini"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["connection_status"] == "connected"
    assert [row["model_id"] for row in data["quota_rows"]] == ["gemini-3-flash"]
    assert data["stats"]["total"] == 1
    assert "usage_trend" not in data


def test_cli_json_connection_error(mock_config, mock_client):
    mock_client.fetch_snapshot.side_effect = ApiError("refused")
    runner = CliRunner()
    result = runner.invoke(main, ["--json"])
    assert result.exit_code == 0
    assert json.loads(result.output) == {"status": "error", "message": "Connection lost"}


def test_cli_trend_json(mock_config, mock_client):
    runner = CliRunner()
    result = runner.invoke(main, ["--json", "--trend"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["model_tree"] == {"claude": ["opus-4-5"], "gemini": ["3-flash"]}
    assert data["selection"]["selectedFamilies"] == ["claude", "gemini"]
    assert [ds["label"] for ds in data["usage_trend"]["datasets"]] == [
        "opus-4-5",
        "3-flash",
    ]
    assert data["usage_stats"]["total"] == 12


def test_cli_toggle_model_persists(mock_config, mock_client):
    runner = CliRunner()
    result = runner.invoke(main, ["--json", "--toggle-model", "claude:opus-4-5"])
    assert result.exit_code == 0
    assert json.loads(result.output)["selection"]["selectedModels"]["claude"] == []

    # The deselection sticks across runs
    result = runner.invoke(main, ["--json", "--trend"])
    assert json.loads(result.output)["selection"]["selectedModels"]["claude"] == []


def test_cli_family_mode(mock_config, mock_client):
    runner = CliRunner()
    result = runner.invoke(main, ["--json", "--mode", "family"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["selection"]["displayMode"] == "family"
    assert [ds["label"] for ds in data["usage_trend"]["datasets"]] == [
        "claude",
        "gemini",
    ]


def test_cli_top(mock_config, mock_client):
    runner = CliRunner()
    with patch("quotadeck.dashboard.rank_models") as mock_rank:
        mock_rank.return_value = [("claude", "opus-4-5", 10)]
        result = runner.invoke(main, ["--json", "--top", "1", "--top-window", "6h"])
    assert result.exit_code == 0
    assert json.loads(result.output)["selection"]["selectedFamilies"] == ["claude"]
    assert mock_rank.call_args.kwargs["n"] == 1


def test_cli_invalid_top_window(mock_config, mock_client):
    runner = CliRunner()
    result = runner.invoke(main, ["--top", "3", "--top-window", "soon"])
    assert result.exit_code == 2
    assert "Invalid window" in result.output


def test_cli_invalid_model_ref(mock_config, mock_client):
    runner = CliRunner()
    result = runner.invoke(main, ["--toggle-model", "opus"])
    assert result.exit_code == 2
    assert "FAMILY:MODEL" in result.output


def test_cli_pin(mock_config, mock_client):
    runner = CliRunner()
    result = runner.invoke(main, ["--pin", "gemini-3-flash"], env={"COLUMNS": "200"})
    assert result.exit_code == 0
    mock_client.update_model_config.assert_called_once_with(
        "gemini-3-flash", {"pinned": True}, None
    )
    assert "Updated gemini-3-flash" in result.output


def test_cli_hide_failure(mock_config, mock_client):
    mock_client.update_model_config.side_effect = ApiError("HTTP 500", 500)
    runner = CliRunner()
    result = runner.invoke(main, ["--hide", "gemini-3-flash"], env={"COLUMNS": "200"})
    assert result.exit_code == 0
    assert "Failed to update" in result.output
    assert "gemini-3-flash" in result.output


def test_cli_password_option(mock_config, mock_client):
    runner = CliRunner()
    runner.invoke(main, ["--password", "secret", "--json"])
    mock_client.fetch_snapshot.assert_called_once_with("secret")


def test_cli_reset_selection(mock_config, mock_client):
    runner = CliRunner()
    runner.invoke(main, ["--json", "--toggle-model", "claude:opus-4-5"])

    result = runner.invoke(main, ["--json", "--reset-selection"])
    assert result.exit_code == 0
    selected = json.loads(result.output)["selection"]["selectedModels"]
    assert selected["claude"] == ["opus-4-5"]


def test_cli_remembers_prompted_password(mock_config, mock_client):
    mock_client.fetch_snapshot.return_value = (SNAPSHOT, "fresh")
    runner = CliRunner()
    result = runner.invoke(main, ["--json"])
    assert result.exit_code == 0
    mock_config.data.__setitem__.assert_called_once_with("password", "fresh")
    mock_config.save.assert_called_once()


def test_cli_keeps_config_without_new_password(mock_config, mock_client):
    runner = CliRunner()
    runner.invoke(main, ["--json"])
    mock_config.save.assert_not_called()
