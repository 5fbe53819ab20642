"""Tests for the command-line entry point."""

import json
from unittest.mock import patch

import pytest

from policyascode.exceptions import ApiError
from policyascode.main import build_parser, main

from tests.conftest import extracted_rule, make_rule


@pytest.fixture
def patched_client(fake_client):
    with patch("policyascode.main.LLMClient", return_value=fake_client):
        yield fake_client


class TestParser:
    def test_command_is_required(self):
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args([])
        assert exc_info.value.code == 2

    def test_extract_requires_files(self):
        with pytest.raises(SystemExit) as exc_info:
            main(["extract", "--output", "rules.json"])
        assert exc_info.value.code == 2

    def test_consolidate_accepts_rules_alias(self):
        args = build_parser().parse_args(["consolidate", "-r", "in.json"])
        assert args.input == "in.json"


class TestExtractCommand:
    def test_writes_combined_rules(self, patched_client, policy_docs, tmp_path, capsys):
        patched_client.queue(
            {"rules": [extracted_rule("Rotate passwords")]},
            {"rules": [extracted_rule("Keep logs"), extracted_rule("Encrypt logs")]},
        )
        output = tmp_path / "out" / "rules.json"

        code = main(["extract", "-o", str(output), str(policy_docs["a"]), str(policy_docs["b"])])

        assert code == 0
        data = json.loads(output.read_text(encoding="utf-8"))
        assert len(data["rules"]) == 3
        assert data["rules"][0]["source_files"] == ["a.md"]
        assert "Extracted 3 rules from 2 files" in capsys.readouterr().err

    def test_prints_to_stdout_without_output(self, patched_client, policy_docs, capsys):
        patched_client.queue({"rules": [extracted_rule("Rotate passwords")]})

        code = main(["extract", str(policy_docs["a"])])

        assert code == 0
        data = json.loads(capsys.readouterr().out)
        assert data["rules"][0]["title"] == "Rotate passwords"

    def test_missing_file_exits_nonzero_but_keeps_results(self, patched_client, policy_docs, tmp_path):
        patched_client.queue({"rules": [extracted_rule("Rotate passwords")]})
        output = tmp_path / "rules.json"

        code = main(["extract", "-o", str(output), str(tmp_path / "nope.md"), str(policy_docs["a"])])

        assert code == 1
        assert len(json.loads(output.read_text(encoding="utf-8"))["rules"]) == 1

    def test_model_flag_reaches_settings(self, fake_client, policy_docs):
        fake_client.queue({"rules": []})
        with patch("policyascode.main.LLMClient", return_value=fake_client) as client_cls:
            main(["extract", "--model", "claude-custom", str(policy_docs["a"])])
        settings = client_cls.call_args[0][0]
        assert settings.model == "claude-custom"

    def test_missing_api_key_fails_before_any_work(self, policy_docs, tmp_path):
        output = tmp_path / "rules.json"
        with patch("policyascode.llm_client.requests.Session") as session_cls:
            code = main(["extract", "-o", str(output), str(policy_docs["a"])])
        assert code == 1
        assert not output.exists()
        session_cls.return_value.post.assert_not_called()


class TestConsolidateCommand:
    def test_applies_edits(self, patched_client, rules_file, tmp_path):
        patched_client.queue({"edits": [{
            "edit": "merge",
            "ids": ["r1", "r2"],
            "title": "Merged",
            "body": "Merged body",
            "priority": "medium",
            "rationale": "Merged rationale",
            "reason": "Same rule",
        }]})
        output = tmp_path / "consolidated.json"

        code = main(["consolidate", "--input", str(rules_file), "--output", str(output)])

        assert code == 0
        rules = json.loads(output.read_text(encoding="utf-8"))["rules"]
        assert len(rules) == 1
        assert rules[0]["source_files"] == ["a.md", "b.md"]

    def test_missing_input_exits_nonzero(self, patched_client, tmp_path):
        code = main(["consolidate", "--input", str(tmp_path / "absent.json")])
        assert code == 1
        assert patched_client.calls == []

    def test_api_error_writes_nothing(self, patched_client, rules_file, tmp_path):
        patched_client.queue(ApiError("invalid x-api-key", status_code=401))
        output = tmp_path / "consolidated.json"

        code = main(["consolidate", "-r", str(rules_file), "-o", str(output)])

        assert code == 1
        assert not output.exists()

    def test_strict_flag(self, patched_client, rules_file, tmp_path):
        patched_client.queue({"edits": [{"edit": "delete", "ids": ["ghost"], "reason": "x"}]})
        output = tmp_path / "consolidated.json"

        code = main(["consolidate", "-r", str(rules_file), "-o", str(output), "--strict"])

        assert code == 1
        assert not output.exists()


class TestValidateCommand:
    def test_example_rules_file(self, patched_client, rules_file, policy_docs, tmp_path, capsys):
        patched_client.queue({"validations": [{"id": "r1", "result": "pass", "reason": "ok"}]})
        output = tmp_path / "validation.json"

        code = main(["validate", "--rules", str(rules_file), "-o", str(output), str(policy_docs["a"])])

        assert code == 0
        data = json.loads(output.read_text(encoding="utf-8"))
        assert data == {"validations": [{"id": "r1", "file": "a.md", "result": "pass", "reason": "ok"}]}
        assert "1 pass" in capsys.readouterr().err

    def test_invalid_rules_file(self, patched_client, tmp_path, policy_docs):
        bad = tmp_path / "bad.json"
        bad.write_text(json.dumps({"rules": [{"id": "x"}]}), encoding="utf-8")

        code = main(["validate", "-r", str(bad), str(policy_docs["a"])])

        assert code == 1

    def test_legacy_rule_fields_are_accepted(self, patched_client, tmp_path, policy_docs, capsys):
        legacy = tmp_path / "legacy.json"
        rule = make_rule("old-1", "a.md").model_dump()
        rule["sources"] = rule.pop("quotes")
        rule["source_file"] = rule.pop("source_files")[0]
        legacy.write_text(json.dumps([rule]), encoding="utf-8")
        patched_client.queue({"validations": [{"id": "old-1", "result": "fail", "reason": "no"}]})

        code = main(["validate", "-r", str(legacy), str(policy_docs["a"])])

        assert code == 0
        assert json.loads(capsys.readouterr().out)["validations"][0]["result"] == "fail"


class TestConfigCommand:
    def test_saves_and_masks_key(self, isolated_env, capsys):
        code = main(["config", "--api-key", "sk-ant-secretvalue", "--model", "claude-x", "--show"])

        assert code == 0
        saved = json.loads(isolated_env.read_text(encoding="utf-8"))
        assert saved["ANTHROPIC_API_KEY"] == "sk-ant-secretvalue"
        assert saved["POLICYASCODE_MODEL"] == "claude-x"
        shown = json.loads(capsys.readouterr().out)
        assert shown["api_key"] == "sk-a...alue"
        assert shown["model"] == "claude-x"

    def test_invalid_base_url_is_not_saved(self, isolated_env):
        code = main(["config", "--base-url", "not-a-url"])
        assert code == 1
        assert not isolated_env.exists()

    def test_saving_without_show_prints_nothing(self, isolated_env, capsys):
        code = main(["config", "--model", "claude-x"])

        assert code == 0
        assert json.loads(isolated_env.read_text(encoding="utf-8"))["POLICYASCODE_MODEL"] == "claude-x"
        assert capsys.readouterr().out == ""

    def test_no_values_shows_effective_settings(self, capsys):
        code = main(["config"])

        assert code == 0
        shown = json.loads(capsys.readouterr().out)
        assert shown["api_key"] == "<not set>"
        assert shown["base_url"] == "https://api.anthropic.com"
