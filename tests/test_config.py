import pytest

from newsradar.config import Config, ConfigModel, load_config, save_config


def test_optional_config_falls_back_to_defaults(tmp_path):
    config = Config(tmp_path / "missing.yaml", optional=True).config
    assert config.dedup.similarity_threshold == 0.8
    assert config.dedup.prefilter_threshold == 0.15
    assert config.watch.confidence_threshold == 0.7
    assert config.scheduler.timezone == "Europe/Istanbul"


def test_required_config_must_exist(tmp_path):
    with pytest.raises(FileNotFoundError):
        Config(tmp_path / "missing.yaml").config


def test_yaml_overrides_and_round_trip(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("dedup:\n  similarity_threshold: 0.85\nscheduler:\n  concurrency: 4\n")

    config = load_config(path)
    assert config.dedup.similarity_threshold == 0.85
    assert config.scheduler.concurrency == 4
    assert config.scheduler.job_attempts == 3

    saved = tmp_path / "nested" / "saved.yaml"
    save_config(config, saved)
    assert load_config(saved) == config


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("")
    assert load_config(path) == ConfigModel()


@pytest.mark.parametrize("text", ["dedup: [unclosed", "dedup:\n  similarity_threshold: 3\n"])
def test_invalid_config_raises_value_error(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text)
    with pytest.raises(ValueError):
        load_config(path)


def test_secrets_come_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("NEWSRADAR_DB_PASSWORD", "gizli")
    monkeypatch.setenv("CEREBRAS_API_KEY", "anahtar")
    config = Config(tmp_path / "missing.yaml", optional=True)

    assert config.get_db_config()["password"] == "gizli"
    assert config.get_llm_config()["api_key"] == "anahtar"


def test_config_path_from_environment(tmp_path, monkeypatch):
    path = tmp_path / "env.yaml"
    path.write_text("log_level: DEBUG\n")
    monkeypatch.setenv("NEWSRADAR_CONFIG", str(path))
    assert Config().config.log_level == "DEBUG"
