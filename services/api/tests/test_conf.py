from datetime import timedelta

import conf
from conf.payfast import get_payfast_conf
from utils import env
from utils.env import EnvVarSpec


def test_order_settings_defaults():
    settings = conf.get_order_settings()
    assert settings.commission_rate == 0.08
    assert settings.approval_window == timedelta(days=30)
    assert settings.payment_window == timedelta(days=7)
    assert settings.collection_token_ttl == timedelta(seconds=120)


def test_order_settings_from_env(monkeypatch):
    monkeypatch.setenv("COMMISSION_RATE", "0.1")
    monkeypatch.setenv("COLLECTION_TOKEN_TTL_SECONDS", "300")
    settings = conf.get_order_settings()
    assert settings.commission_rate == 0.1
    assert settings.collection_token_ttl == timedelta(seconds=300)


def test_validate_accepts_test_environment():
    assert conf.validate()


def test_validate_rejects_bad_values(monkeypatch):
    monkeypatch.setenv("COMMISSION_RATE", "1.5")
    assert not conf.validate()

    monkeypatch.setenv("COMMISSION_RATE", "0.08")
    monkeypatch.setenv("HTTP_PORT", "eighty")
    assert not conf.validate()


def test_oidc_settings_optional_at_validation(monkeypatch):
    monkeypatch.setenv("AUTH_ENABLED", "true")
    monkeypatch.delenv("AUTH_OIDC_JWK_URL", raising=False)
    monkeypatch.delenv("AUTH_OIDC_AUDIENCE", raising=False)
    monkeypatch.delenv("AUTH_OIDC_ISSUER", raising=False)
    # Missing OIDC settings surface when the auth client is built
    assert conf.validate()
    assert conf.get_auth_enabled() is True


def test_payfast_sandbox_outside_production():
    config = get_payfast_conf(production=False)
    assert config.sandbox is True
    assert config.verify_signatures is False
    assert config.merchant_id == "10000100"

    live = get_payfast_conf(production=True)
    assert live.sandbox is False
    assert live.verify_signatures is True


def test_env_spec_parsing(monkeypatch):
    spec = EnvVarSpec(id="BOLEKA_TEST_FLAG", default="false", parse=lambda x: x == "true", type=(bool, ...))
    assert env.parse(spec) is False
    monkeypatch.setenv("BOLEKA_TEST_FLAG", "true")
    assert env.parse(spec) is True

    optional = EnvVarSpec(id="BOLEKA_TEST_OPTIONAL", is_optional=True)
    monkeypatch.setenv("BOLEKA_TEST_OPTIONAL", "")
    assert env.parse(optional) is None
    assert env.validate([optional])

    required = EnvVarSpec(id="BOLEKA_TEST_REQUIRED")
    monkeypatch.delenv("BOLEKA_TEST_REQUIRED", raising=False)
    assert not env.validate([required])


def test_production_requires_live_payfast_credentials(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "production")
    for var in ("PAYFAST_MERCHANT_ID", "PAYFAST_MERCHANT_KEY", "PAYFAST_PASSPHRASE"):
        monkeypatch.delenv(var, raising=False)
    assert not conf.validate()

    # Sandbox merchant with a passphrase is still rejected
    monkeypatch.setenv("PAYFAST_MERCHANT_ID", "10000100")
    monkeypatch.setenv("PAYFAST_MERCHANT_KEY", "46f0cd694581a")
    monkeypatch.setenv("PAYFAST_PASSPHRASE", "jt7NOE43FZPn")
    assert not conf.validate()

    monkeypatch.setenv("PAYFAST_MERCHANT_ID", "18273645")
    monkeypatch.setenv("PAYFAST_MERCHANT_KEY", "q1cd2rdny4a53")
    monkeypatch.setenv("PAYFAST_PASSPHRASE", "  ")
    assert not conf.validate()

    monkeypatch.setenv("PAYFAST_PASSPHRASE", "jt7NOE43FZPn")
    assert conf.validate()
