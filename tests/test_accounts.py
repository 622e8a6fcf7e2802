from mandala.accounts import resolve_account
from mandala.config_manager import SystemConfig, get_config
from mandala.models import Role


def test_reviewer_resolved_from_allow_list():
    cfg = SystemConfig(REVIEWER_ACCOUNTS=["QA@Example.com", "tester-01"])

    assert resolve_account("u1", "qa@example.com", cfg).is_reviewer
    assert resolve_account("tester-01", None, cfg).role == Role.REVIEWER
    assert resolve_account("u2", "someone@example.com", cfg).role == Role.STANDARD
    assert not resolve_account("u3", None, SystemConfig()).is_reviewer


def test_runtime_yaml_and_env_override(tmp_path, monkeypatch):
    runtime = tmp_path / "runtime.yaml"
    runtime.write_text(
        "GATE_TIMEZONE: UTC\n"
        "FOLD_REFLECTION_NOTES: true\n"
        "REVIEWER_ACCOUNTS: [admin@example.com]\n"
        "UNKNOWN_KEY: ignored\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("MANDALA_REVIEWERS", "Ops@Example.com, ")

    cfg = get_config(runtime)
    assert cfg.GATE_TIMEZONE == "UTC"
    assert cfg.FOLD_REFLECTION_NOTES is True
    assert cfg.REVIEWER_ACCOUNTS == ["admin@example.com", "ops@example.com"]
    assert not hasattr(cfg, "UNKNOWN_KEY")
    assert cfg.SUB_GOAL_MAX_LENGTH == 50


def test_missing_runtime_yaml_uses_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("MANDALA_REVIEWERS", raising=False)
    cfg = get_config(tmp_path / "absent.yaml")
    assert cfg.TOTAL_STEPS == 14
    assert cfg.GATE_TIMEZONE == "Asia/Seoul"
    assert cfg.REVIEWER_ACCOUNTS == []
