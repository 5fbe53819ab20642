"""Shared fixtures for policyascode tests."""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
from pydantic import ValidationError

from policyascode.config import Settings
from policyascode.exceptions import ApiError
from policyascode.models import Rule, RuleSet


ENV_VARS = (
    "ANTHROPIC_API_KEY",
    "ANTHROPIC_BASE_URL",
    "ANTHROPIC_VERSION",
    "POLICYASCODE_MODEL",
    "POLICYASCODE_LOG_FILE",
    "LOG_LEVEL",
    "LLM_TEMPERATURE",
    "LLM_MAX_TOKENS",
    "LLM_TIMEOUT",
)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep tests away from the real home config, .env and API key."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    config_file = tmp_path / "home" / "config.json"
    monkeypatch.setenv("POLICYASCODE_CONFIG", str(config_file))
    monkeypatch.chdir(tmp_path)
    return config_file


@pytest.fixture
def settings() -> Settings:
    return Settings(api_key="sk-test-1234567890", base_url="https://llm.example.test")


class FakeClient:
    """Stands in for LLMClient: returns queued payloads in order.

    A queued ``Exception`` instance is raised instead of returned.
    """

    def __init__(self, responses: Optional[List[Any]] = None):
        self.responses = list(responses or [])
        self.calls: List[Dict[str, Any]] = []

    def queue(self, *responses: Any) -> "FakeClient":
        self.responses.extend(responses)
        return self

    def request_structured(self, system_prompt, content, schema, response_model):
        self.calls.append({
            "system_prompt": system_prompt,
            "content": content,
            "schema": schema,
            "response_model": response_model,
        })
        if not self.responses:
            raise ApiError("no response queued")
        payload = self.responses.pop(0)
        if isinstance(payload, Exception):
            raise payload
        try:
            return response_model.model_validate(payload)
        except ValidationError as e:
            raise ApiError(f"Response does not match schema: {e}") from e


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


def make_rule(rule_id: str, *source_files: str, **fields: Any) -> Rule:
    """Build a rule with sensible defaults."""
    data = {
        "id": rule_id,
        "title": f"Title {rule_id}",
        "body": f"Body of {rule_id}",
        "priority": "medium",
        "rationale": f"Rationale {rule_id}",
        "quotes": [{"text": f"quote {rule_id}", "file": source_files[0] if source_files else ""}],
        "source_files": list(source_files),
    }
    data.update(fields)
    return Rule.model_validate(data)


def extracted_rule(title: str, priority: str = "high", quotes: Optional[List[str]] = None) -> Dict[str, Any]:
    """Rule payload as the extraction call returns it."""
    return {
        "title": title,
        "body": f"{title} must hold.",
        "priority": priority,
        "rationale": f"Because {title.lower()}.",
        "quotes": quotes if quotes is not None else [f"{title} excerpt"],
    }


@pytest.fixture
def policy_docs(tmp_path: Path) -> Dict[str, Path]:
    """Two small markdown policy documents."""
    docs = tmp_path / "docs"
    docs.mkdir()
    a = docs / "a.md"
    a.write_text("# Access\n\nPasswords must be rotated every 90 days.\n", encoding="utf-8")
    b = docs / "b.md"
    b.write_text("# Retention\n\nLogs are kept for one year.\n", encoding="utf-8")
    return {"a": a, "b": b}


@pytest.fixture
def rules_file(tmp_path: Path) -> Path:
    """rules.json with r1 from a.md and r2 from b.md."""
    ruleset = RuleSet(rules=[make_rule("r1", "a.md"), make_rule("r2", "b.md")])
    path = tmp_path / "rules.json"
    path.write_text(json.dumps(ruleset.to_data()), encoding="utf-8")
    return path
