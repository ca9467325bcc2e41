from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from vodafone_invoice_mailer.config import DEFAULT_EMAIL_SUBJECT, AppConfig, load_config


pytestmark = pytest.mark.usefixtures("no_env")


def _write(tmp_path: Path, name: str, text: str) -> Path:
    p = tmp_path / name
    p.write_text(text, encoding="utf-8")
    return p


def test_full_config(tmp_path: Path) -> None:
    cfg_path = _write(
        tmp_path,
        "cfg.yaml",
        """
vodafone:
  user: "kunde@example.com"
  pass: "geheim"
email:
  from: "sender@example.com"
  to: "a@example.com, b@example.com"
  subject: "Rechnungen"
smtp:
  host: "smtp.example.com"
  port: "587"
  user: "smtp-user"
  pass: "smtp-pass"
categories: ["kabel"]
""",
    )
    cfg = load_config(cfg_path)
    assert cfg.vodafone.user == "kunde@example.com"
    assert cfg.vodafone.password == "geheim"
    assert cfg.email.sender == "sender@example.com"
    assert cfg.email.recipients == ["a@example.com", "b@example.com"]
    assert cfg.email.effective_subject == "Rechnungen"
    assert cfg.smtp.host == "smtp.example.com"
    assert cfg.smtp.port == "587"
    assert cfg.smtp.user == "smtp-user"
    assert cfg.smtp.password == "smtp-pass"
    assert cfg.categories == ["kabel"]


def test_passwords_are_not_in_repr(tmp_path: Path) -> None:
    cfg_path = _write(tmp_path, "cfg.yaml", "vodafone:\n  pass: geheim\nsmtp:\n  pass: smtp-geheim\n")
    cfg = load_config(cfg_path)
    assert "geheim" not in repr(cfg)


def test_empty_file_gives_defaults(tmp_path: Path) -> None:
    cfg = load_config(_write(tmp_path, "cfg.yaml", ""))
    assert cfg.vodafone.user == ""
    assert cfg.smtp.port == ""
    assert cfg.email.effective_subject == DEFAULT_EMAIL_SUBJECT
    assert cfg.categories == ["mobilfunk", "kabel"]
    assert cfg.browser.headless is True
    assert cfg.logging.level == "INFO"


def test_missing_file_uses_env_only(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("VODAFONE_USER", "env-user")
    monkeypatch.setenv("VODAFONE_PASS", "env-pass")
    monkeypatch.setenv("EMAIL_TO", "x@example.com,y@example.com")
    monkeypatch.setenv("SMTP_PORT", "465")
    monkeypatch.setenv("BROWSER_HEADLESS", "false")
    monkeypatch.setenv("INVOICE_CATEGORIES", "kabel")

    cfg = load_config(tmp_path / "does-not-exist.yaml")

    assert cfg.vodafone.user == "env-user"
    assert cfg.vodafone.password == "env-pass"
    assert cfg.email.recipients == ["x@example.com", "y@example.com"]
    assert cfg.smtp.port == "465"
    assert cfg.browser.headless is False
    assert cfg.categories == ["kabel"]


def test_partial_file_overrides_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("VODAFONE_USER", "env-user")
    monkeypatch.setenv("VODAFONE_PASS", "env-pass")
    cfg_path = _write(tmp_path, "cfg.yaml", "vodafone:\n  user: file-user\n")

    cfg = load_config(cfg_path)

    assert cfg.vodafone.user == "file-user"
    assert cfg.vodafone.password == "env-pass"


def test_bare_section_keeps_defaults(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SMTP_HOST", "smtp.env.example")
    cfg = load_config(_write(tmp_path, "cfg.yaml", "smtp:\nemail:\n"))
    assert cfg.smtp.host == "smtp.env.example"


def test_env_var_expansion(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MY_SMTP_PASSWORD", "expanded")
    cfg_path = _write(tmp_path, "cfg.yaml", 'smtp:\n  pass: "${MY_SMTP_PASSWORD}"\n  user: "${UNSET_VAR_FOR_TEST}"\n')
    cfg = load_config(cfg_path)
    assert cfg.smtp.password == "expanded"
    assert cfg.smtp.user == ""


def test_integer_port_is_kept_as_text(tmp_path: Path) -> None:
    cfg = load_config(_write(tmp_path, "cfg.yaml", "smtp:\n  port: 465\n"))
    assert cfg.smtp.port == "465"


def test_invalid_yaml_raises(tmp_path: Path) -> None:
    with pytest.raises(yaml.YAMLError):
        load_config(_write(tmp_path, "cfg.yaml", "{{{invalid yaml"))


def test_non_mapping_yaml_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        load_config(_write(tmp_path, "cfg.yaml", "- just\n- a list\n"))


def test_unknown_category_rejected(tmp_path: Path) -> None:
    with pytest.raises(Exception):
        load_config(_write(tmp_path, "cfg.yaml", "categories: [mobilfunk, dsl]\n"))


def test_unknown_category_error_names_known_keys() -> None:
    with pytest.raises(ValueError, match=r"unknown category 'DSL' \(known: mobilfunk, kabel\)"):
        AppConfig.model_validate({"categories": ["Kabel", "DSL"]})


def test_categories_are_normalized() -> None:
    cfg = AppConfig.model_validate({"categories": [" Kabel", "kabel", "MOBILFUNK"]})
    assert cfg.categories == ["kabel", "mobilfunk"]


def test_browser_timeouts_validated(tmp_path: Path) -> None:
    with pytest.raises(Exception):
        load_config(_write(tmp_path, "cfg.yaml", "browser:\n  overall_timeout_seconds: 0\n"))
    cfg = load_config(_write(tmp_path, "ok.yaml", "browser:\n  overall_timeout_seconds: 120\n  poll_cycles: 3\n"))
    assert cfg.browser.overall_timeout_seconds == 120
    assert cfg.browser.poll_cycles == 3
