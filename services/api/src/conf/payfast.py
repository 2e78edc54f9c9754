from dataclasses import replace

from utils import env, log
from utils.env import EnvVarSpec

from clients.payfast import PayFastConfig

logger = log.get_logger(__name__)

# Public PayFast sandbox merchant, usable without an account
SANDBOX_MERCHANT_ID = "10000100"
SANDBOX_MERCHANT_KEY = "46f0cd694581a"

PAYFAST_MERCHANT_ID = EnvVarSpec(id="PAYFAST_MERCHANT_ID", default=SANDBOX_MERCHANT_ID)
PAYFAST_MERCHANT_KEY = EnvVarSpec(
    id="PAYFAST_MERCHANT_KEY", default=SANDBOX_MERCHANT_KEY, is_secret=True
)
PAYFAST_PASSPHRASE = EnvVarSpec(id="PAYFAST_PASSPHRASE", is_optional=True, is_secret=True)
PAYFAST_RETURN_URL = EnvVarSpec(id="PAYFAST_RETURN_URL", is_optional=True)
PAYFAST_CANCEL_URL = EnvVarSpec(id="PAYFAST_CANCEL_URL", is_optional=True)
PAYFAST_NOTIFY_URL = EnvVarSpec(id="PAYFAST_NOTIFY_URL", is_optional=True)
PAYFAST_VALIDATE_WITH_SERVER = EnvVarSpec(
    id="PAYFAST_VALIDATE_WITH_SERVER",
    default="false",
    parse=lambda x: x.strip().lower() == "true",
    type=(bool, ...),
)

VALIDATED_ENV_VARS = [
    PAYFAST_MERCHANT_ID,
    PAYFAST_MERCHANT_KEY,
    PAYFAST_VALIDATE_WITH_SERVER,
]


def validate_production() -> bool:
    """Live credentials must be set explicitly and a passphrase configured."""
    required = [
        replace(spec, default=None, is_optional=False)
        for spec in (PAYFAST_MERCHANT_ID, PAYFAST_MERCHANT_KEY, PAYFAST_PASSPHRASE)
    ]
    ok = env.validate(required)

    merchant_id = env.parse(PAYFAST_MERCHANT_ID)
    if merchant_id == SANDBOX_MERCHANT_ID or env.parse(PAYFAST_MERCHANT_KEY) == SANDBOX_MERCHANT_KEY:
        logger.error("PayFast sandbox merchant credentials cannot be used in production")
        ok = False
    if not (env.parse(PAYFAST_PASSPHRASE) or "").strip():
        logger.error("PAYFAST_PASSPHRASE is required in production")
        ok = False
    return ok


def get_payfast_conf(production: bool) -> PayFastConfig:
    """Live endpoints and signature checks only apply in production."""
    return PayFastConfig(
        merchant_id=env.parse(PAYFAST_MERCHANT_ID),
        merchant_key=env.parse(PAYFAST_MERCHANT_KEY),
        passphrase=env.parse(PAYFAST_PASSPHRASE) or "",
        sandbox=not production,
        return_url=env.parse(PAYFAST_RETURN_URL),
        cancel_url=env.parse(PAYFAST_CANCEL_URL),
        notify_url=env.parse(PAYFAST_NOTIFY_URL),
        verify_signatures=production,
        validate_with_server=env.parse(PAYFAST_VALIDATE_WITH_SERVER),
    )
