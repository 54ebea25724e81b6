import pytest

from cloakwatch.config import DEFAULT_HOSTING_SUFFIXES, DEFAULT_SEARCH_TERMS, Config, load_config, validate_config


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in (
        "TELEGRAM_BOT_TOKEN",
        "TELEGRAM_CHAT_ID",
        "CLASSIFIER_URL",
        "CLASSIFIER_THRESHOLD",
        "HUNTERS_ENABLED",
        "CRDF_MAX_PER_INTERVAL",
        "PROXY_URL",
    ):
        monkeypatch.delenv(name, raising=False)
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    monkeypatch.setenv("CONFIG_DIR", str(config_dir))
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    return config_dir


def test_load_config_reads_environment(monkeypatch, clean_env):
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "token")
    monkeypatch.setenv("TELEGRAM_CHAT_ID", "-100")
    monkeypatch.setenv("CLASSIFIER_URL", "http://classifier:8000/predict")
    monkeypatch.setenv("CLASSIFIER_THRESHOLD", "0.8")
    monkeypatch.setenv("HUNTERS_ENABLED", "True")
    monkeypatch.setenv("PROXY_URL", "http://proxy:3128")

    config = load_config()

    assert config.classifier_threshold == 0.8
    assert config.hunter_confidence_threshold == 0.98
    assert config.hunters_enabled is True
    assert config.proxy_url == "http://proxy:3128"
    assert config.data_dir.is_dir()
    assert config.db_path.name == "cloakwatch.db"
    assert config.search_terms == DEFAULT_SEARCH_TERMS
    assert validate_config(config) == []


def test_heuristics_yaml_overrides_lists(clean_env):
    (clean_env / "heuristics.yaml").write_text(
        "hosting_suffixes:\n  - pages.example\n"
        "typosquat_domains: [goggle.example]\n"
        "redirect_fingerprint:\n  screen: 800x600\n"
        "search_terms: []\n"
    )
    (clean_env / "allowlist.txt").write_text("# comment\nwww.Example.org\n")

    config = load_config()

    assert config.hosting_suffixes == ["pages.example"]
    assert config.typosquat_domains == ["goggle.example"]
    assert config.redirect_fingerprint == {"screen": "800x600"}
    assert config.search_terms == DEFAULT_SEARCH_TERMS
    assert "example.org" in config.allowlist


def test_broken_heuristics_yaml_falls_back_to_defaults(clean_env):
    (clean_env / "heuristics.yaml").write_text("hosting_suffixes: [unclosed\n")
    config = load_config()
    assert config.hosting_suffixes == DEFAULT_HOSTING_SUFFIXES


def test_validate_config_reports_missing_and_out_of_range(tmp_path):
    config = Config(
        telegram_bot_token="",
        telegram_chat_id="",
        classifier_threshold=1.5,
        crdf_max_per_interval=0,
        data_dir=tmp_path / "data",
        config_dir=tmp_path,
    )
    errors = validate_config(config)

    assert "TELEGRAM_BOT_TOKEN is required" in errors
    assert "TELEGRAM_CHAT_ID is required" in errors
    assert "CLASSIFIER_URL is required" in errors
    assert any(error.startswith("CLASSIFIER_THRESHOLD") for error in errors)
    assert "CRDF_MAX_PER_INTERVAL must be at least 1" in errors
