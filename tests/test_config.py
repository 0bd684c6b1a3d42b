"""Tests for configuration loading."""

from pathlib import Path

import pytest

from reviewrunner.config import Config, JiraConfig, load_config

ENV_VARS = (
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "OPENAI_MODEL",
    "JIRA_URL",
    "JIRA_EMAIL",
    "JIRA_API_TOKEN",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    # setenv first so values loaded from .env files are undone after each test
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("reviewrunner.config.DEFAULT_CONFIG_PATHS", [tmp_path / "reviewrunner.yaml"])
    return tmp_path


def no_env_file(tmp_path: Path) -> str:
    return str(tmp_path / "missing.env")


class TestConfigDefaults:
    def test_default_values(self) -> None:
        cfg = Config()
        assert cfg.max_tokens == 120000
        assert cfg.max_workers == 5
        assert cfg.launch_stagger_seconds == 0.25
        assert cfg.context_dir == ".context"
        assert cfg.openai_api_key.get_secret_value() == ""

    def test_llm_defaults(self) -> None:
        cfg = Config()
        assert cfg.llm.provider == "openai"
        assert cfg.llm.model == "gpt-4o"
        assert cfg.llm.timeout_seconds == 90.0
        assert cfg.llm.token_ceiling == 120000

    def test_secret_str_masking(self) -> None:
        cfg = Config(openai_api_key="sk-secret123", jira={"api_token": "jira-secret"})
        assert "sk-secret123" not in repr(cfg)
        assert "jira-secret" not in str(cfg)
        assert cfg.openai_api_key.get_secret_value() == "sk-secret123"

    def test_derived_paths(self) -> None:
        cfg = Config(context_dir="ctx")
        assert cfg.reviews_dir == Path("ctx/reviews")
        assert cfg.design_dir == Path("ctx/design")
        assert cfg.repo_dir_for("Org/payroll-gateway") == Path("ctx/projects/payroll-gateway")
        assert cfg.repo_dir_for("bare-name") == Path("ctx/projects/bare-name")

    def test_api_key_for_provider(self) -> None:
        cfg = Config(openai_api_key="o", anthropic_api_key="a")
        assert cfg.api_key_for_provider() == "o"
        cfg.llm.provider = "anthropic"
        assert cfg.api_key_for_provider() == "a"


class TestJiraConfig:
    def test_has_credentials(self) -> None:
        assert JiraConfig(url="u", email="e", api_token="t").has_credentials()
        assert not JiraConfig(url="u", email="e").has_credentials()
        assert not JiraConfig().has_credentials()


class TestLoadConfig:
    def test_load_from_yaml(self, tmp_path: Path) -> None:
        yaml_path = tmp_path / "config.yaml"
        yaml_path.write_text(
            "max_tokens: 64000\n"
            "max_workers: 2\n"
            "language: PHP\n"
            "llm:\n"
            "  model: gpt-4o-mini\n"
            "  timeout_seconds: 30\n"
        )
        cfg = load_config(config_path=str(yaml_path), env_file=no_env_file(tmp_path))
        assert cfg.max_tokens == 64000
        assert cfg.max_workers == 2
        assert cfg.language == "PHP"
        assert cfg.llm.model == "gpt-4o-mini"
        assert cfg.llm.timeout_seconds == 30

    def test_default_path_used(self, tmp_path: Path) -> None:
        (tmp_path / "reviewrunner.yaml").write_text("context_dir: elsewhere\n")
        cfg = load_config(env_file=no_env_file(tmp_path))
        assert cfg.context_dir == "elsewhere"

    def test_env_vars(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        monkeypatch.setenv("OPENAI_MODEL", "gpt-4.1")
        monkeypatch.setenv("JIRA_URL", "https://x.atlassian.net")
        monkeypatch.setenv("JIRA_EMAIL", "me@x.com")
        monkeypatch.setenv("JIRA_API_TOKEN", "tok")
        cfg = load_config(env_file=no_env_file(tmp_path))
        assert cfg.openai_api_key.get_secret_value() == "sk-env"
        assert cfg.llm.model == "gpt-4.1"
        assert cfg.jira.has_credentials()

    def test_empty_sections_in_yaml(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("OPENAI_MODEL", "gpt-4.1")
        monkeypatch.setenv("JIRA_URL", "https://x.atlassian.net")
        yaml_path = tmp_path / "c.yaml"
        yaml_path.write_text("jira:\nllm:\n")
        cfg = load_config(config_path=str(yaml_path), env_file=no_env_file(tmp_path))
        assert cfg.llm.model == "gpt-4.1"
        assert cfg.jira.url == "https://x.atlassian.net"

    def test_yaml_value_not_replaced_by_env(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("OPENAI_MODEL", "from-env")
        yaml_path = tmp_path / "c.yaml"
        yaml_path.write_text("llm:\n  model: from-yaml\n")
        cfg = load_config(config_path=str(yaml_path), env_file=no_env_file(tmp_path))
        assert cfg.llm.model == "from-yaml"

    def test_dotenv_file(self, tmp_path: Path) -> None:
        env_path = tmp_path / ".env"
        env_path.write_text("OPENAI_API_KEY=sk-dotenv\nJIRA_EMAIL=dot@x.com\n")
        cfg = load_config(env_file=str(env_path))
        assert cfg.openai_api_key.get_secret_value() == "sk-dotenv"
        assert cfg.jira.email == "dot@x.com"

    def test_dotenv_does_not_override_environment(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-real")
        env_path = tmp_path / ".env"
        env_path.write_text("OPENAI_API_KEY=sk-dotenv\n")
        cfg = load_config(env_file=str(env_path))
        assert cfg.openai_api_key.get_secret_value() == "sk-real"

    def test_overrides_win(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("OPENAI_MODEL", "from-env")
        cfg = load_config(
            overrides={"llm": {"model": "from-flag"}, "max_workers": 9, "language": None},
            env_file=no_env_file(tmp_path),
        )
        assert cfg.llm.model == "from-flag"
        assert cfg.max_workers == 9
        assert cfg.language == ""

    def test_missing_explicit_file_uses_defaults(self, tmp_path: Path) -> None:
        cfg = load_config(config_path=str(tmp_path / "nope.yaml"), env_file=no_env_file(tmp_path))
        assert cfg.max_tokens == 120000
