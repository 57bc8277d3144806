import os
from typing import Any, Callable, TypeVar

from dotenv import dotenv_values
from pydantic import BaseModel

from .env import Env, PrimaryType

T = TypeVar("T", bound=BaseModel)

Converters = dict[str, Callable[[str], PrimaryType]]


def load_env(
    default: type[Env] = Env,
    env_file: str | None = ".env",
    override: T | None = None,
) -> T:
    """
    Build settings from the process environment and a dotenv file.

    Values in ``env_file`` replace those from the environment. Fields set
    explicitly on ``override`` replace both, and the result then has the
    override's type.
    """
    converters = default.types_map()

    values = _read_environment(converters)
    if env_file and os.path.isfile(env_file):
        values.update(_read_env_file(env_file, converters))

    if override is not None:
        values.update(override.model_dump(exclude_unset=True))
        return type(override)(**values)

    return default(**values)


def _read_environment(converters: Converters) -> dict[str, Any]:
    return {
        name: convert(os.environ[name])
        for name, convert in converters.items()
        if os.environ.get(name)
    }


def _read_env_file(env_file: str, converters: Converters) -> dict[str, Any]:
    values: dict[str, Any] = {}

    for name, raw_value in dotenv_values(dotenv_path=env_file).items():
        convert = converters.get(name)
        if convert is not None and raw_value:
            values[name] = convert(raw_value)

    return values
