# ABOUTME: Tests for env resolution and the env template
# ABOUTME: Precedence is explicit > secrets manager > .env, first value wins per key
import pytest

from mcpp.catalog import default_catalog
from mcpp.env import (
    ENV_TEMPLATE_HEADER,
    DotEnvSource,
    ExplicitSource,
    build_env_template,
    parse_env_pairs,
    read_env_file,
    resolve_env,
)


@pytest.fixture
def catalog(tmp_path):
    return default_catalog(tmp_path)


class StaticSource:
    """Env source returning fixed values and recording the keys it was asked for."""

    def __init__(self, name, values):
        self._name = name
        self._values = values
        self.requested = []

    @property
    def name(self):
        return self._name

    def try_resolve(self, keys):
        self.requested.append(list(keys))
        return {k: self._values[k] for k in keys if k in self._values}


class FailingSource:
    name = "broken"

    def try_resolve(self, keys):
        raise OSError("connection refused")


class TestReadEnvFile:
    """Tests for .env parsing."""

    def test_missing_file(self, tmp_path):
        assert read_env_file(tmp_path / ".env") == {}

    def test_comments_quotes_and_equals(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text(
            "# comment\n"
            "\n"
            'GITHUB_TOKEN="ghp_quoted"\n'
            "N8N_BASE_URL=http://localhost:5678/api?a=b\n"
            "EMPTY=\n"
        )
        values = read_env_file(env_file)
        assert values == {
            "GITHUB_TOKEN": "ghp_quoted",
            "N8N_BASE_URL": "http://localhost:5678/api?a=b",
        }

    def test_dollar_values_taken_literally(self, tmp_path, monkeypatch):
        monkeypatch.setenv("X", "from_process")
        env_file = tmp_path / ".env"
        env_file.write_text("API_KEY=abc${X}def\nREF=${X}\n")

        assert read_env_file(env_file) == {"API_KEY": "abc${X}def", "REF": "${X}"}


class TestParseEnvPairs:
    """Tests for KEY=VALUE parsing from the command line."""

    def test_splits_on_first_equals(self):
        assert parse_env_pairs(["URL=http://a?b=c"]) == {"URL": "http://a?b=c"}

    def test_invalid_entry_warns(self):
        with pytest.warns(UserWarning, match="NOEQUALS"):
            assert parse_env_pairs(["NOEQUALS", "A=1"]) == {"A": "1"}


class TestResolveEnv:
    """Tests for resolve_env()."""

    def test_explicit_beats_dotenv(self, catalog, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("GITHUB_TOKEN=from_file\n")

        result = resolve_env(
            catalog,
            ["github"],
            [ExplicitSource({"GITHUB_TOKEN": "explicit"}), DotEnvSource(env_file)],
        )

        assert result.values == {"GITHUB_TOKEN": "explicit"}
        assert result.sources == {"GITHUB_TOKEN": "explicit"}
        assert result.missing == {}

    def test_secrets_manager_beats_dotenv(self, catalog, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("GITHUB_TOKEN=from_file\nWEBFLOW_API_TOKEN=wf\n")
        secrets = StaticSource("doppler", {"GITHUB_TOKEN": "from_secrets"})

        result = resolve_env(
            catalog,
            ["github", "webflow"],
            [ExplicitSource({}), secrets, DotEnvSource(env_file)],
        )

        assert result.values == {"GITHUB_TOKEN": "from_secrets", "WEBFLOW_API_TOKEN": "wf"}
        assert result.sources["WEBFLOW_API_TOKEN"] == ".env"

    def test_source_asked_only_for_pending_keys(self, catalog):
        first = StaticSource("first", {"N8N_API_KEY": "k"})
        second = StaticSource("second", {})

        resolve_env(catalog, ["n8n"], [first, second])

        assert first.requested == [["N8N_API_KEY", "N8N_BASE_URL"]]
        assert second.requested == [["N8N_BASE_URL"]]

    def test_only_selected_server_keys_consulted(self, catalog):
        source = StaticSource("s", {"GITHUB_TOKEN": "t"})

        result = resolve_env(catalog, ["filesystem"], [source])

        assert source.requested == []
        assert result.values == {}

    def test_failing_source_is_skipped(self, catalog):
        result = resolve_env(
            catalog,
            ["github"],
            [FailingSource(), StaticSource("fallback", {"GITHUB_TOKEN": "t"})],
        )
        assert result.values == {"GITHUB_TOKEN": "t"}

    def test_missing_required_keys_reported_per_server(self, catalog):
        result = resolve_env(
            catalog,
            ["filesystem", "github", "n8n"],
            [StaticSource("s", {"N8N_API_KEY": "k"})],
        )
        assert result.missing == {"github": ["GITHUB_TOKEN"], "n8n": ["N8N_BASE_URL"]}

    def test_optional_keys_resolved_but_not_required(self, catalog):
        values = {
            "OPENAI_API_KEY": "o",
            "SUPABASE_URL": "u",
            "SUPABASE_SERVICE_ROLE_KEY": "s",
            "NEO4J_URI": "bolt://x",
        }
        result = resolve_env(catalog, ["crawl4ai-rag"], [StaticSource("s", values)])
        assert result.missing == {}
        assert result.get("NEO4J_URI") == "bolt://x"


class TestBuildEnvTemplate:
    """Tests for build_env_template()."""

    def test_new_template(self, catalog):
        content = build_env_template(catalog, ["filesystem", "github", "n8n"], None)

        assert content.startswith(ENV_TEMPLATE_HEADER[0])
        assert "GITHUB_TOKEN=\n" in content
        assert "N8N_API_KEY=\n" in content
        assert "N8N_BASE_URL=\n" in content

    def test_nothing_needed(self, catalog):
        assert build_env_template(catalog, ["filesystem"], None) is None

    def test_existing_declared_keys_not_repeated(self, catalog):
        existing = "GITHUB_TOKEN=ghp_real\n"
        assert build_env_template(catalog, ["github"], existing) is None

    def test_existing_content_kept_and_appended(self, catalog):
        existing = "# mine\nexport GITHUB_TOKEN=ghp_real"

        content = build_env_template(catalog, ["github", "webflow"], existing)

        assert content.startswith("# mine\nexport GITHUB_TOKEN=ghp_real\n")
        assert "WEBFLOW_API_TOKEN=" in content
        assert content.count("GITHUB_TOKEN") == 1
