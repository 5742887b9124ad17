from pathlib import Path
from unittest.mock import MagicMock

import pytest
from typer.testing import CliRunner

from flockcli.core.command_handler import CommandHandler
from flockcli.core.services.bulk_resolver import BulkResolver
from flockcli.core.services.paginator import Paginator
from flockcli.domain.interfaces.record_sink import RecordSink
from flockcli.domain.interfaces.social_api import SocialApi
from flockcli.domain.interfaces.user_interface import UserInterface
from flockcli.domain.models.common import AssociateKind, AuthMode, Cursor, LookupKind, Page
from flockcli.domain.models.errors import RemoteFetchError
from flockcli.main import app


class ListSink(RecordSink):
    def __init__(self, records):
        self.records = records

    async def write(self, record):
        self.records.append(record)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_args(tmp_path: Path):
    """Point the CLI at a config file that does not exist, so defaults apply."""
    return ["--config", str(tmp_path / "config.yaml")]


@pytest.fixture(autouse=True)
def quiet_logging(mocker):
    return mocker.patch("flockcli.main.setup_logging")


@pytest.fixture
def written():
    return []


@pytest.fixture
def mock_api():
    return MagicMock(spec=SocialApi)


@pytest.fixture
def mock_ui():
    return MagicMock(spec=UserInterface)


@pytest.fixture
def mock_dependencies(mocker, mock_api, mock_ui, pacing, written):
    """Replaces the composition root with a handler over a mocked API."""
    handler = CommandHandler(
        api=mock_api,
        pacing=pacing,
        paginator=Paginator(pacing),
        bulk_resolver=BulkResolver(mock_api, pacing),
        session_factory=MagicMock(),
        sink_factory=lambda output: ListSink(written),
        ui=mock_ui,
    )
    return mocker.patch(
        "flockcli.main.create_dependencies",
        return_value={"api": mock_api, "command_handler": handler},
    )


def test_followers_command_flow(runner, config_args, mock_dependencies, mock_api, mock_ui, written):
    """Pages of follower ids end up in the sink and the API is closed afterwards."""
    mock_api.fetch_associates.side_effect = [
        Page(items=["1", "2"], next_cursor=Cursor(7)),
        Page(items=["3"], next_cursor=None),
    ]

    result = runner.invoke(app, config_args + ["followers", "someone"])

    assert result.exit_code == 0, result.output
    assert written == ["1", "2", "3"]
    assert mock_api.fetch_associates.call_args_list[0].args[:2] == (AssociateKind.FOLLOWERS, "someone")
    mock_api.aclose.assert_awaited_once()
    mock_ui.display_info.assert_called_once_with("3 followers id(s) of someone collected.")


def test_lookup_command_reads_ids_file(runner, config_args, mock_dependencies, mock_api, tmp_path, written):
    ids_file = tmp_path / "ids.txt"
    ids_file.write_text("10 11\n12\n", encoding="utf-8")
    mock_api.lookup.return_value = [{"id_str": "12"}, {"id_str": "10"}]

    result = runner.invoke(app, config_args + ["lookup", "9", "--ids-file", str(ids_file), "--users", "--no-entities"])

    assert result.exit_code == 0, result.output
    mock_api.lookup.assert_awaited_once_with(LookupKind.USERS, ("9", "10", "11", "12"), include_entities=False)
    assert written == [{"id_str": "10"}, {"id_str": "12"}]


def test_lookup_without_ids_is_a_usage_error(runner, config_args, mock_dependencies):
    result = runner.invoke(app, config_args + ["lookup"])
    assert result.exit_code == 2
    mock_dependencies.assert_not_called()


def test_stream_with_invalid_box_is_a_usage_error(runner, config_args, mock_dependencies):
    result = runner.invoke(app, config_args + ["stream", "10,0,0,10"])
    assert result.exit_code == 2
    mock_dependencies.assert_not_called()


def test_failed_fetch_exits_with_one(runner, config_args, mock_dependencies, mock_api, mock_ui):
    mock_api.fetch_timeline.side_effect = RemoteFetchError("Not authorized.", status_code=401)
    result = runner.invoke(app, config_args + ["timeline", "someone"])
    assert result.exit_code == 1
    mock_ui.display_error.assert_called_once()


def test_auth_mode_option_reaches_composition_root(runner, config_args, mock_dependencies, mock_api):
    mock_api.fetch_associates.return_value = Page(items=[], next_cursor=None)
    result = runner.invoke(app, config_args + ["--auth-mode", "user_context", "friends", "someone"])
    assert result.exit_code == 0, result.output
    mock_dependencies.assert_called_once_with(auth_mode=AuthMode.USER_CONTEXT)


def test_missing_credentials_exit_with_two(runner, config_args):
    result = runner.invoke(app, config_args + ["followers", "someone"])
    assert result.exit_code == 2
    assert "No credentials" in result.output


def test_quotas_command_shows_the_table(runner, config_args, monkeypatch):
    monkeypatch.setenv("SOCIAL_APP_BEARER_TOKEN", "app-token")
    result = runner.invoke(app, config_args + ["quotas"])
    assert result.exit_code == 0, result.output
    assert "app_context" in result.output
    assert "lookup" in result.output
