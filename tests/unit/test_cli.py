"""Unit tests for the jcfa command line: dispatch, output modes and exit codes."""

import json

import httpx
import pytest
import yaml
from conftest import request_json

from jcfa.__version__ import __version__
from jcfa.allowlist import Checker
from jcfa.batch import BatchAbortedError
from jcfa.cli._allowlist import shell_profile
from jcfa.cli.main import build_parser, command_path, exit_code_for, run
from jcfa.config import ConfigError, load_config
from jcfa.jira import FieldValidationError, JiraAPIError, JiraAuthError, LinkError

ISSUE = {
    "key": "PROJ-1",
    "fields": {
        "summary": "Fix [login] bug",
        "status": {"name": "To Do"},
        "issuetype": {"name": "Bug"},
        "issuelinks": [],
        "subtasks": [],
    },
}


@pytest.fixture(autouse=True)
def workdir(tmp_path, monkeypatch):
    """Run from an empty directory so no project-local templates are picked up."""
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def jcfa(make_client, config_file):
    """Invoke the CLI against the fake Jira with the test config file."""

    def invoke(*argv, checker=None):
        return run(
            ["--config", str(config_file), *argv],
            checker=checker or Checker({}),
            client=make_client(),
        )

    return invoke


def write_json(path, data):
    path.write_text(json.dumps(data))
    return str(path)


# =============================================================================
# Parser and Exit Codes
# =============================================================================


class TestParser:
    def test_command_paths(self):
        parser = build_parser()

        assert command_path(parser.parse_args(["get", "PROJ-1"])) == "get"
        assert command_path(parser.parse_args(["comments", "list", "PROJ-1"])) == "comments list"

    @pytest.mark.parametrize(
        "argv",
        [["--json", "get", "PROJ-1"], ["get", "PROJ-1", "--json"], ["batch", "create", "f", "--json"]],
    )
    def test_json_flag_before_or_after_command(self, argv):
        assert build_parser().parse_args(argv).json is True

    def test_json_defaults_off(self):
        assert build_parser().parse_args(["get", "PROJ-1"]).json is False

    def test_subcommand_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["comments"])


class TestExitCodes:
    @pytest.mark.parametrize(
        "error, code",
        [
            (ConfigError("x"), 4),
            (JiraAuthError("x"), 1),
            (FieldValidationError("x"), 2),
            (BatchAbortedError(0, "x"), 2),
            (JiraAPIError("x"), 3),
            (LinkError("x"), 3),
            (OSError("x"), 1),
        ],
    )
    def test_mapping(self, error, code):
        assert exit_code_for(error) == code


# =============================================================================
# Commands Without Credentials
# =============================================================================


class TestNoAccountNeeded:
    def test_version(self, capsys):
        assert run(["version"]) == 0
        assert capsys.readouterr().out.strip() == f"jcfa {__version__}"

    def test_version_json(self, capsys):
        assert run(["version", "--json"]) == 0
        assert json.loads(capsys.readouterr().out) == {"version": __version__}

    def test_template_list_json(self, capsys):
        assert run(["--json", "template", "list"], checker=Checker({})) == 0

        names = [t["name"] for t in json.loads(capsys.readouterr().out)]
        assert names == ["bug", "epic", "story", "subtask", "task"]

    def test_template_show(self, capsys):
        assert run(["template", "show", "story"], checker=Checker({})) == 0
        assert "story_points" in capsys.readouterr().out

    def test_template_init(self, tmp_path, capsys):
        target = tmp_path / "tmpl"

        assert run(["template", "init", "--dir", str(target)], checker=Checker({})) == 0

        assert (target / "story.yaml").exists()

    def test_missing_credentials_is_config_error(self, tmp_path, capsys):
        code = run(["--config", str(tmp_path / "none.yaml"), "get", "PROJ-1"], checker=Checker({}))

        assert code == 4
        assert "domain is required" in capsys.readouterr().err

    def test_configure_with_flags(self, tmp_path, memory_keyring, capsys):
        path = tmp_path / "new" / "config.yaml"

        code = run(
            [
                "--config", str(path), "configure",
                "--domain", "https://acme.atlassian.net/",
                "--email", "dev@acme.io",
                "--token", "tok",
                "--no-verify",
            ],
            checker=Checker({}),
        )

        assert code == 0
        saved = yaml.safe_load(path.read_text())
        assert saved["domain"] == "acme.atlassian.net"
        assert "api_token" not in saved
        assert memory_keyring.passwords == {("jcfa", "dev@acme.io"): "tok"}
        assert "system keyring" in capsys.readouterr().out

    def test_configure_file_backend(self, tmp_path, monkeypatch, memory_keyring, capsys):
        monkeypatch.setenv("JIRA_KEYRING_BACKEND", "file")
        path = tmp_path / "config.yaml"

        code = run(
            [
                "--config", str(path), "--json", "configure",
                "--domain", "acme.atlassian.net",
                "--email", "dev@acme.io",
                "--token", "tok",
                "--no-verify",
            ],
            checker=Checker({}),
        )

        assert code == 0
        assert yaml.safe_load(path.read_text())["api_token"] == "tok"
        assert memory_keyring.passwords == {}
        assert json.loads(capsys.readouterr().out)["token_storage"] == "file"

    def test_keyring_token_satisfies_credentials(self, tmp_path):
        path = tmp_path / "config.yaml"
        run(
            [
                "--config", str(path), "configure",
                "--domain", "test.atlassian.net",
                "--email", "dev@acme.io",
                "--token", "tok",
                "--no-verify",
            ],
            checker=Checker({}),
        )

        config = load_config(path)

        assert config.get_api_token() == "tok"
        config.require_credentials()


# =============================================================================
# Allowlist
# =============================================================================


class TestAllowlistEnforcement:
    def test_read_only_blocks_create(self, jcfa, handler, capsys):
        code = jcfa("create", "-t", "story", "-d", "x.json", checker=Checker({"JIRA_READONLY": "1"}))

        assert code == 1
        assert "JIRA_READONLY" in capsys.readouterr().err
        assert handler.requests == []

    def test_allowlisted_command_runs(self, jcfa, handler):
        handler.add("GET", "/issue/PROJ-1", httpx.Response(200, json=ISSUE))

        assert jcfa("get", "PROJ-1", checker=Checker({"JIRA_COMMAND_ALLOWLIST": "get"})) == 0

    def test_version_always_allowed(self):
        assert run(["version"], checker=Checker({"JIRA_COMMAND_ALLOWLIST": "get"})) == 0


class TestAllowlistCommands:
    def test_status_disabled(self, capsys):
        assert run(["allowlist", "status", "--json"]) == 0

        status = json.loads(capsys.readouterr().out)
        assert status["enabled"] is False
        assert status["allowed_commands"] is None

    def test_status_read_only(self, monkeypatch, capsys):
        monkeypatch.setenv("JIRA_READONLY", "1")

        assert run(["allowlist", "status"]) == 0

        out = capsys.readouterr().out
        assert "read-only mode" in out
        assert "comments list" in out
        assert "batch create" not in out

    def test_status_custom_allowlist_json(self, monkeypatch, capsys):
        monkeypatch.setenv("JIRA_COMMAND_ALLOWLIST", "get, Search,allowlist status")

        assert run(["--json", "allowlist", "status"]) == 0

        status = json.loads(capsys.readouterr().out)
        assert status["enabled"] is True
        assert status["read_only"] is False
        assert status["allowed_commands"] == ["allowlist status", "get", "search"]
        assert status["env"]["JIRA_COMMAND_ALLOWLIST"] == "get, Search,allowlist status"

    def test_commands_json(self, capsys):
        assert run(["allowlist", "commands", "--json"]) == 0

        data = json.loads(capsys.readouterr().out)
        assert "get" in data["read_commands"]
        assert "batch create" in data["write_commands"]
        assert data["total"] == len(data["read_commands"]) + len(data["write_commands"])

    def test_check_allowed(self, monkeypatch, capsys):
        monkeypatch.setenv("JIRA_READONLY", "1")

        assert run(["allowlist", "check", "comments list"]) == 0
        assert "ALLOWED" in capsys.readouterr().out

    def test_check_blocked_exits_1(self, monkeypatch, capsys):
        monkeypatch.setenv("JIRA_READONLY", "1")

        assert run(["allowlist", "check", "create", "--json"]) == 1

        result = json.loads(capsys.readouterr().out)
        assert result["command"] == "create"
        assert result["allowed"] is False
        assert "JIRA_READONLY" in result["error"]

    def test_check_when_disabled(self, capsys):
        assert run(["allowlist", "check", "create"]) == 0
        assert "allowlist is disabled" in capsys.readouterr().out

    def test_enable_uses_shell_profile(self, monkeypatch, capsys):
        monkeypatch.setenv("SHELL", "/bin/zsh")

        assert run(["allowlist", "enable"]) == 0

        out = capsys.readouterr().out
        assert "export JIRA_READONLY=1" in out
        assert ".zshrc" in out

    @pytest.mark.parametrize(
        "shell, profile",
        [("/bin/zsh", ".zshrc"), ("/usr/bin/fish", ".config/fish/config.fish"), ("", ".bashrc")],
    )
    def test_shell_profile(self, shell, profile):
        assert shell_profile({"SHELL": shell, "HOME": "/home/dev"}) == f"/home/dev/{profile}"

    def test_blocked_under_custom_allowlist(self, monkeypatch, capsys):
        monkeypatch.setenv("JIRA_COMMAND_ALLOWLIST", "get")

        assert run(["allowlist", "status"]) == 1
        assert "not in the allowlist" in capsys.readouterr().err


# =============================================================================
# Issue Commands
# =============================================================================


class TestGet:
    def test_human_output_keeps_brackets(self, jcfa, handler, capsys):
        handler.add("GET", "/issue/PROJ-1", httpx.Response(200, json=ISSUE))

        assert jcfa("get", "PROJ-1") == 0
        out = capsys.readouterr().out
        assert "PROJ-1" in out
        assert "Fix [login] bug" in out

    def test_json_with_comments(self, jcfa, handler, capsys):
        handler.add("GET", "/issue/PROJ-1", httpx.Response(200, json=ISSUE))
        handler.add(
            "GET", "/issue/PROJ-1/comment", httpx.Response(200, json={"comments": [{"id": "7"}]})
        )

        assert jcfa("get", "PROJ-1", "--comments", "--json") == 0

        data = json.loads(capsys.readouterr().out)
        assert data["key"] == "PROJ-1"
        assert data["comments"] == [{"id": "7"}]

    def test_not_found_is_api_error(self, jcfa, capsys):
        assert jcfa("get", "PROJ-404") == 3
        assert capsys.readouterr().err.startswith("Error:")

    def test_auth_failure(self, jcfa, handler):
        handler.add("GET", "/issue/PROJ-1", httpx.Response(401, json={"errorMessages": ["bad"]}))

        assert jcfa("get", "PROJ-1") == 1


class TestCreate:
    @pytest.fixture
    def data_file(self, tmp_path):
        return write_json(
            tmp_path / "story.json", {"Project": "PROJ", "Summary": "Login", "StoryPoints": 3}
        )

    def test_dry_run_creates_nothing(self, jcfa, handler, data_file, createmeta_response, capsys):
        handler.add("GET", "/issue/createmeta", httpx.Response(200, json=createmeta_response))

        assert jcfa("--json", "create", "-t", "story", "-d", data_file, "--dry-run") == 0

        output = json.loads(capsys.readouterr().out)
        assert output["dry_run"] is True
        assert output["fields"]["customfield_10016"] == 3
        assert output["fields"]["issuetype"] == {"name": "Story"}
        assert not handler.calls("POST", "/issue")

    def test_create(self, jcfa, handler, data_file, createmeta_response, capsys):
        handler.add("GET", "/issue/createmeta", httpx.Response(200, json=createmeta_response))
        handler.add("POST", "/issue", httpx.Response(201, json={"id": "1", "key": "PROJ-9"}))

        assert jcfa("create", "-t", "story", "-d", data_file) == 0

        assert "PROJ-9" in capsys.readouterr().out
        fields = request_json(handler.calls("POST", "/issue")[0])["fields"]
        assert fields["summary"] == "Login"
        assert fields["description"]["type"] == "doc"

    def test_validation_failure(self, jcfa, handler, tmp_path, createmeta_response, capsys):
        handler.add("GET", "/issue/createmeta", httpx.Response(200, json=createmeta_response))
        data_file = write_json(
            tmp_path / "bad.json", {"Project": "PROJ", "Summary": "x", "Priority": "Blocker"}
        )

        assert jcfa("create", "-t", "story", "-d", data_file) == 2
        assert "Priority" in capsys.readouterr().err
        assert not handler.calls("POST", "/issue")

    def test_unknown_template(self, jcfa, tmp_path):
        data_file = write_json(tmp_path / "d.json", {})
        assert jcfa("create", "-t", "nope", "-d", data_file) == 2

    def test_data_must_be_object(self, jcfa, tmp_path, capsys):
        data_file = write_json(tmp_path / "d.json", [1, 2])

        assert jcfa("create", "-t", "story", "-d", data_file) == 2
        assert "must be a JSON object" in capsys.readouterr().err


class TestUpdateAndSearch:
    def test_update_resolves_alias(self, jcfa, handler):
        handler.add("GET", "/field", httpx.Response(200, json=[{"id": "summary", "name": "Summary"}]))
        handler.add("PUT", "/issue/PROJ-1", httpx.Response(204))

        assert jcfa("update", "PROJ-1", "-f", "story_points=5", "-f", "summary=New") == 0

        body = request_json(handler.calls("PUT", "/issue/PROJ-1")[0])
        assert body["fields"] == {"customfield_10016": 5, "summary": "New"}

    def test_update_needs_fields(self, jcfa):
        assert jcfa("update", "PROJ-1") == 2

    def test_list_uses_default_project(self, jcfa, handler, capsys):
        handler.add("POST", "/search/jql", httpx.Response(200, json={"issues": [ISSUE]}))

        assert jcfa("list", "--json") == 0

        jql = request_json(handler.requests[0])["jql"]
        assert jql.startswith("project = PROJ AND assignee = currentUser()")
        assert json.loads(capsys.readouterr().out)["issues"][0]["key"] == "PROJ-1"


class TestDeletesNeedConfirm:
    @pytest.mark.parametrize(
        "argv",
        [
            ["comments", "delete", "PROJ-1", "10"],
            ["link", "delete", "77"],
            ["attachment", "delete", "5"],
        ],
    )
    def test_refused_without_confirm(self, jcfa, handler, capsys, argv):
        assert jcfa(*argv) == 2
        assert "--confirm" in capsys.readouterr().err
        assert handler.requests == []

    def test_comment_delete_confirmed(self, jcfa, handler):
        handler.add("DELETE", "/issue/PROJ-1/comment/10", httpx.Response(204))

        assert jcfa("comments", "delete", "PROJ-1", "10", "--confirm") == 0


class TestFieldsMap:
    def test_saves_mapping(self, jcfa, handler, config_file):
        fields = [{"id": "customfield_10014", "name": "Epic Link", "custom": True}]
        handler.add("GET", "/field", httpx.Response(200, json=fields))

        assert jcfa("fields", "map", "epic_link", "customfield_10014") == 0

        saved = yaml.safe_load(config_file.read_text())
        assert saved["field_mappings"] == {
            "story_points": "customfield_10016",
            "epic_link": "customfield_10014",
        }


# =============================================================================
# Batch
# =============================================================================


def fake_bulk(fail_summaries=()):
    """/issue/bulk stand-in numbering issues PROJ-1.. across calls."""
    counter = {"next": 1}

    def handle(request):
        issues, errors = [], []
        for position, update in enumerate(request_json(request)["issueUpdates"]):
            if update["fields"]["summary"] in fail_summaries:
                errors.append(
                    {
                        "status": 400,
                        "failedElementNumber": position,
                        "elementErrors": {"errors": {"summary": "rejected"}},
                    }
                )
                continue
            key = f"PROJ-{counter['next']}"
            counter["next"] += 1
            issues.append({"id": key[5:], "key": key})
        return httpx.Response(201, json={"issues": issues, "errors": errors})

    return handle


class TestBatchCreate:
    @pytest.fixture
    def batch_file(self, tmp_path):
        return write_json(
            tmp_path / "batch.json",
            [
                {"template": "story", "data": {"Project": "PROJ", "Summary": "One"}},
                {"template": "story", "data": {"Project": "PROJ", "Summary": "Two"}},
            ],
        )

    def test_all_created(self, jcfa, handler, batch_file, createmeta_response, capsys):
        handler.add("GET", "/issue/createmeta", httpx.Response(200, json=createmeta_response))
        handler.add("POST", "/issue/bulk", fake_bulk())

        assert jcfa("batch", "create", batch_file, "--json") == 0

        result = json.loads(capsys.readouterr().out)
        assert result["success"] == 2
        assert [c["key"] for c in result["created"]] == ["PROJ-1", "PROJ-2"]

    def test_partial_failure_exits_2(self, jcfa, handler, batch_file, createmeta_response, capsys):
        handler.add("GET", "/issue/createmeta", httpx.Response(200, json=createmeta_response))
        handler.add("POST", "/issue/bulk", fake_bulk(fail_summaries={"Two"}))

        assert jcfa("batch", "create", batch_file, "--no-progress") == 2

        out = capsys.readouterr().out
        assert "1 created, 1 failed" in out
        assert "item 1" in out

    def test_invalid_item_aborts_before_create(
        self, jcfa, handler, tmp_path, createmeta_response, capsys
    ):
        handler.add("GET", "/issue/createmeta", httpx.Response(200, json=createmeta_response))
        batch_file = write_json(
            tmp_path / "batch.json",
            [
                {"template": "story", "data": {"Project": "PROJ", "Summary": "Fine"}},
                {"template": "story", "data": {"Project": "PROJ", "Summary": "x", "Priority": "Nope"}},
            ],
        )

        assert jcfa("batch", "create", batch_file) == 2

        assert "item 1" in capsys.readouterr().err
        assert not handler.calls("POST", "/issue/bulk")

    def test_dry_run(self, jcfa, handler, batch_file, createmeta_response, capsys):
        handler.add("GET", "/issue/createmeta", httpx.Response(200, json=createmeta_response))

        assert jcfa("--json", "batch", "create", batch_file, "--dry-run") == 0

        output = json.loads(capsys.readouterr().out)
        assert [item["index"] for item in output["items"]] == [0, 1]
        assert not handler.calls("POST", "/issue/bulk")

    def test_bad_batch_file(self, jcfa, tmp_path):
        assert jcfa("batch", "create", write_json(tmp_path / "b.json", {"not": "a list"})) == 2
