"""Configuration loading from YAML, .env/env vars, and CLI overrides."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr

DEFAULT_CONFIG_PATHS = [
    Path("reviewrunner.yaml"),
    Path.home() / ".reviewrunner" / "config.yaml",
]


class LLMConfig(BaseModel):
    """Completion backend configuration."""
    provider: str = "openai"  # "openai" or "anthropic"
    model: str = "gpt-4o"
    base_url: str = "https://api.openai.com/v1"
    timeout_seconds: float = 90.0
    token_ceiling: int = 120000
    max_output_tokens: int = 4096


class JiraConfig(BaseModel):
    url: str = ""
    email: str = ""
    api_token: SecretStr = SecretStr("")

    def has_credentials(self) -> bool:
        return bool(self.url and self.email and self.api_token.get_secret_value())


class Config(BaseModel):
    openai_api_key: SecretStr = SecretStr("")
    anthropic_api_key: SecretStr = SecretStr("")
    max_tokens: int = 120000
    max_workers: int = 5
    launch_stagger_seconds: float = 0.25
    context_dir: str = ".context"
    language: str = ""
    llm: LLMConfig = Field(default_factory=LLMConfig)
    jira: JiraConfig = Field(default_factory=JiraConfig)

    @property
    def reviews_dir(self) -> Path:
        return Path(self.context_dir) / "reviews"

    @property
    def design_dir(self) -> Path:
        return Path(self.context_dir) / "design"

    def repo_dir_for(self, repo: str) -> Path:
        """Local checkout for ``owner/name`` (only the last segment is used)."""
        name = repo.rstrip("/").rsplit("/", 1)[-1]
        return Path(self.context_dir) / "projects" / name

    def api_key_for_provider(self) -> str:
        if self.llm.provider == "anthropic":
            return self.anthropic_api_key.get_secret_value()
        return self.openai_api_key.get_secret_value()


def load_config(
    config_path: str | None = None,
    overrides: dict[str, Any] | None = None,
    env_file: str | None = None,
) -> Config:
    """Load config from YAML file, env vars, and caller overrides (in that priority)."""
    raw: dict[str, Any] = {}

    # 1. Load from YAML file
    paths_to_try = [Path(config_path)] if config_path else DEFAULT_CONFIG_PATHS
    for p in paths_to_try:
        if p.exists():
            with open(p) as f:
                raw = yaml.safe_load(f) or {}
            break

    # 2. Env var overrides (.env never clobbers variables already set)
    load_dotenv(dotenv_path=env_file, override=False)
    if key := os.environ.get("OPENAI_API_KEY"):
        raw.setdefault("openai_api_key", key)
    if key := os.environ.get("ANTHROPIC_API_KEY"):
        raw.setdefault("anthropic_api_key", key)
    if model := os.environ.get("OPENAI_MODEL"):
        raw["llm"] = raw.get("llm") or {}
        raw["llm"].setdefault("model", model)

    jira_env = {
        "url": os.environ.get("JIRA_URL"),
        "email": os.environ.get("JIRA_EMAIL"),
        "api_token": os.environ.get("JIRA_API_TOKEN"),
    }
    jira_raw = raw["jira"] = raw.get("jira") or {}
    for field_name, value in jira_env.items():
        if value:
            jira_raw.setdefault(field_name, value)

    # 3. Caller overrides (CLI flags)
    if overrides:
        _merge(raw, overrides)

    return Config(**raw)


def _merge(target: dict[str, Any], updates: dict[str, Any]) -> None:
    """Merge ``updates`` into ``target`` in place, skipping None values."""
    for key, value in updates.items():
        if value is None:
            continue
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _merge(target[key], value)
        else:
            target[key] = value
