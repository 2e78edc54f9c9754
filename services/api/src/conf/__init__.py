from datetime import timedelta
from typing import List, Literal

from pydantic import BaseModel

from models.operations.orders import OrderSettings
from utils import auth, env, log
from utils.env import EnvVarSpec

logger = log.get_logger(__name__)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() == "true"


#### Types ####

class HttpServerConf(BaseModel):
    host: str
    port: int
    autoreload: bool


class SchedulerConf(BaseModel):
    enabled: bool
    interval_minutes: int


StoreBackend = Literal["couchbase", "memory"]

#### Env Vars ####

## Environment ##

ENVIRONMENT = EnvVarSpec(id="ENVIRONMENT", default="development")

## Auth ##

AUTH_ENABLED = EnvVarSpec(
    id="AUTH_ENABLED",
    default="true",
    parse=_parse_bool,
    type=(bool, ...),
)
AUTH_OIDC_JWK_URL = EnvVarSpec(id="AUTH_OIDC_JWK_URL", is_optional=True)
AUTH_OIDC_AUDIENCE = EnvVarSpec(id="AUTH_OIDC_AUDIENCE", is_optional=True)
AUTH_OIDC_ISSUER = EnvVarSpec(id="AUTH_OIDC_ISSUER", is_optional=True)

INTERNAL_API_KEY = EnvVarSpec(id="INTERNAL_API_KEY", is_optional=True, is_secret=True)

## Logging ##

LOG_LEVEL = EnvVarSpec(id="LOG_LEVEL", default="INFO")

## HTTP ##

HTTP_HOST = EnvVarSpec(id="HTTP_HOST", default="0.0.0.0")

HTTP_PORT = EnvVarSpec(id="HTTP_PORT", default="8000", parse=int, type=(int, ...))

HTTP_AUTORELOAD = EnvVarSpec(
    id="HTTP_AUTORELOAD",
    parse=_parse_bool,
    default="false",
    type=(bool, ...),
)

HTTP_EXPOSE_ERRORS = EnvVarSpec(
    id="HTTP_EXPOSE_ERRORS",
    default="false",
    parse=_parse_bool,
    type=(bool, ...),
)

## Store ##

STORE_BACKEND = EnvVarSpec(
    id="STORE_BACKEND",
    default="couchbase",
    parse=lambda x: x.strip().lower(),
    type=(StoreBackend, ...),
)

## Orders ##

COMMISSION_RATE = EnvVarSpec(
    id="COMMISSION_RATE",
    default="0.08",
    parse=float,
    type=(float, ...),
)

ORDER_APPROVAL_WINDOW_DAYS = EnvVarSpec(
    id="ORDER_APPROVAL_WINDOW_DAYS",
    default="30",
    parse=int,
    type=(int, ...),
)

ORDER_PAYMENT_WINDOW_DAYS = EnvVarSpec(
    id="ORDER_PAYMENT_WINDOW_DAYS",
    default="7",
    parse=int,
    type=(int, ...),
)

COLLECTION_TOKEN_TTL_SECONDS = EnvVarSpec(
    id="COLLECTION_TOKEN_TTL_SECONDS",
    default="120",
    parse=int,
    type=(int, ...),
)

## Scheduler ##

ORDER_EXPIRY_SCHEDULER_ENABLED = EnvVarSpec(
    id="ORDER_EXPIRY_SCHEDULER_ENABLED",
    default="true",
    parse=_parse_bool,
    type=(bool, ...),
)

ORDER_EXPIRY_INTERVAL_MINUTES = EnvVarSpec(
    id="ORDER_EXPIRY_INTERVAL_MINUTES",
    default="15",
    parse=int,
    type=(int, ...),
)

## Couchbase ##
## Declared in conf/couchbase.py, validated only when STORE_BACKEND=couchbase.

## PayFast ##
## Declared in conf/payfast.py.


#### Validation ####

VALIDATED_ENV_VARS: List[EnvVarSpec] = [
    ENVIRONMENT,
    AUTH_ENABLED,
    HTTP_AUTORELOAD,
    HTTP_EXPOSE_ERRORS,
    HTTP_PORT,
    LOG_LEVEL,
    STORE_BACKEND,
    COMMISSION_RATE,
    ORDER_APPROVAL_WINDOW_DAYS,
    ORDER_PAYMENT_WINDOW_DAYS,
    COLLECTION_TOKEN_TTL_SECONDS,
    ORDER_EXPIRY_SCHEDULER_ENABLED,
    ORDER_EXPIRY_INTERVAL_MINUTES,
]


def validate() -> bool:
    from . import payfast

    env_vars = list(VALIDATED_ENV_VARS)
    if get_auth_enabled():
        env_vars.extend([AUTH_OIDC_JWK_URL, AUTH_OIDC_AUDIENCE, AUTH_OIDC_ISSUER])
    if get_store_backend() == "couchbase":
        from . import couchbase

        env_vars.extend(couchbase.VALIDATED_ENV_VARS)
    env_vars.extend(payfast.VALIDATED_ENV_VARS)

    if not env.validate(env_vars):
        return False
    if is_production() and not payfast.validate_production():
        return False

    rate = get_commission_rate()
    if not 0 <= rate < 1:
        logger.error(f"COMMISSION_RATE must be in [0, 1), got {rate}")
        return False
    return True


#### Getters ####

def get_environment() -> str:
    return env.parse(ENVIRONMENT).strip().lower()


def is_production() -> bool:
    return get_environment() in ("production", "prod")


def get_auth_enabled() -> bool:
    return env.parse(AUTH_ENABLED)


def get_auth_config() -> auth.AuthClientConfig:
    """Get authentication configuration."""
    return auth.AuthClientConfig(
        jwk_url=env.parse(AUTH_OIDC_JWK_URL),
        audience=env.parse(AUTH_OIDC_AUDIENCE),
        issuer=env.parse(AUTH_OIDC_ISSUER),
    )


def get_internal_api_key() -> str:
    return env.parse(INTERNAL_API_KEY)


def get_http_expose_errors() -> bool:
    return env.parse(HTTP_EXPOSE_ERRORS)


def get_log_level() -> str:
    return env.parse(LOG_LEVEL)


def get_http_conf() -> HttpServerConf:
    return HttpServerConf(
        host=env.parse(HTTP_HOST),
        port=env.parse(HTTP_PORT),
        autoreload=env.parse(HTTP_AUTORELOAD),
    )


def get_store_backend() -> StoreBackend:
    return env.parse(STORE_BACKEND)


def get_commission_rate() -> float:
    return env.parse(COMMISSION_RATE)


def get_order_settings() -> OrderSettings:
    return OrderSettings(
        commission_rate=get_commission_rate(),
        approval_window=timedelta(days=env.parse(ORDER_APPROVAL_WINDOW_DAYS)),
        payment_window=timedelta(days=env.parse(ORDER_PAYMENT_WINDOW_DAYS)),
        collection_token_ttl=timedelta(seconds=env.parse(COLLECTION_TOKEN_TTL_SECONDS)),
    )


def get_scheduler_conf() -> SchedulerConf:
    return SchedulerConf(
        enabled=env.parse(ORDER_EXPIRY_SCHEDULER_ENABLED),
        interval_minutes=max(1, env.parse(ORDER_EXPIRY_INTERVAL_MINUTES)),
    )
