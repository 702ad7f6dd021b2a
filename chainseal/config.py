"""
Runtime configuration.
Values come from CHAINSEAL_* environment variables or CLI options.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .core import HashMode
from .exceptions import ConfigError
from .timestamp import DEFAULT_TIMEOUT, DEFAULT_TSA_URL
from .verify import DEFAULT_AUTHORITY_KEY

DEFAULT_CHAIN_FILE = "blockchain.json"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def parse_mode(value: str) -> HashMode:
    try:
        return HashMode(value.strip().lower())
    except ValueError:
        choices = ", ".join(m.value for m in HashMode)
        raise ConfigError(f"Unknown hash mode {value!r} (expected one of: {choices})")


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


@dataclass
class Settings:
    chain_file: Path = Path(DEFAULT_CHAIN_FILE)
    mode: HashMode = HashMode.SIGNED
    tsa_url: str = DEFAULT_TSA_URL
    authority_key: str = DEFAULT_AUTHORITY_KEY
    timeout: float = DEFAULT_TIMEOUT
    persist_index: bool = False
    sign: bool = True

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from CHAINSEAL_* variables, falling back to defaults.

        Raises:
            ConfigError: If a variable holds an invalid value
        """
        env = os.environ if environ is None else environ
        settings = cls()

        if "CHAINSEAL_FILE" in env:
            settings.chain_file = Path(env["CHAINSEAL_FILE"])
        if "CHAINSEAL_MODE" in env:
            settings.mode = parse_mode(env["CHAINSEAL_MODE"])
        if "CHAINSEAL_TSA_URL" in env:
            settings.tsa_url = env["CHAINSEAL_TSA_URL"]
        if "CHAINSEAL_AUTHORITY_KEY" in env:
            settings.authority_key = env["CHAINSEAL_AUTHORITY_KEY"].strip()
        if "CHAINSEAL_TIMEOUT" in env:
            try:
                settings.timeout = float(env["CHAINSEAL_TIMEOUT"])
            except ValueError:
                raise ConfigError(f"CHAINSEAL_TIMEOUT must be a number, got {env['CHAINSEAL_TIMEOUT']!r}")
            if settings.timeout <= 0:
                raise ConfigError("CHAINSEAL_TIMEOUT must be positive")
        if "CHAINSEAL_PERSIST_INDEX" in env:
            settings.persist_index = _parse_bool("CHAINSEAL_PERSIST_INDEX", env["CHAINSEAL_PERSIST_INDEX"])
        if "CHAINSEAL_SIGN" in env:
            settings.sign = _parse_bool("CHAINSEAL_SIGN", env["CHAINSEAL_SIGN"])

        return settings
