import os
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Tuple

from pydantic import ValidationError, create_model

from . import log

logger = log.get_logger(__name__)


def _identity(value: str) -> str:
    return value


@dataclass(frozen=True)
class EnvVarSpec:
    """Declaration of one environment variable.

    ``parse`` turns the raw string into a Python value and ``type`` is the
    pydantic field definition the parsed value is validated against.
    """

    id: str
    default: Optional[str] = None
    parse: Callable[[str], Any] = _identity
    type: Tuple[Any, Any] = (str, ...)
    is_optional: bool = False
    is_secret: bool = False


def parse(var: EnvVarSpec) -> Any:
    value = os.environ.get(var.id, var.default)
    if value is None or (value == "" and var.is_optional):
        return None
    return var.parse(value)


def validate(env_vars: Iterable[EnvVarSpec]) -> bool:
    env_vars = list(env_vars)
    fields = {}
    values = {}
    ok = True

    for var in env_vars:
        try:
            value = parse(var)
        except ValueError as e:
            logger.error(f"Invalid value for {var.id}: {e}")
            ok = False
            continue
        if value is None:
            if not var.is_optional:
                logger.error(f"Missing required environment variable {var.id}")
                ok = False
            continue
        fields[var.id] = var.type
        values[var.id] = value

    if fields:
        model = create_model("EnvVars", **fields)
        try:
            model(**values)
        except ValidationError as e:
            for error in e.errors():
                var_id = error["loc"][0] if error["loc"] else "?"
                logger.error(f"Invalid value for {var_id}: {error['msg']}")
            ok = False

    for var in env_vars:
        if var.id in values:
            shown = "***" if var.is_secret else values[var.id]
            logger.debug(f"{var.id}={shown}")

    return ok
