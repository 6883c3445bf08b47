"""
PSID Tools - Configuration
==========================

Codec configuration. Values can come from:
- Default values (defined here)
- Environment variables
- Explicit CodecConfig instances passed to PSIDHeader

Environment variables (all optional):
    PSID_VALIDATE_ON_WRITE: normalize headers before every write (1/true/yes/on)
    PSID_TEXT_ENCODING: codec for the name/author/copyright slots
    PSID_STRICT_PAYLOAD: reject payloads missing their embedded load address
"""

from dataclasses import dataclass
from typing import Optional
import codecs
import os


_TRUE_VALUES = ("1", "true", "yes", "on")


def _env_flag(name: str) -> Optional[bool]:
    """Read a boolean environment variable, None when unset."""
    value = os.environ.get(name)
    if value is None:
        return None
    return value.strip().lower() in _TRUE_VALUES


@dataclass
class CodecConfig:
    """
    Configuration for PSID decoding and encoding.

    Attributes:
        validate_on_write: Normalize the header before every write (default: False)
        text_encoding: Character set of the text slots (default: latin-1, which
            maps every byte to one character so text round-trips byte-exact)
        strict_payload: Raise TruncatedPayloadError when loadAddress is 0 but the
            payload holds fewer than 2 bytes (default: False)
    """

    validate_on_write: bool = False
    text_encoding: str = "latin-1"
    strict_payload: bool = False

    @classmethod
    def from_env(cls) -> "CodecConfig":
        """
        Create a CodecConfig from environment variables.

        Unset variables keep their defaults. An unknown PSID_TEXT_ENCODING
        is ignored.

        Returns:
            CodecConfig with values from the environment
        """
        config = cls()

        if (validate := _env_flag("PSID_VALIDATE_ON_WRITE")) is not None:
            config.validate_on_write = validate

        if encoding := os.environ.get("PSID_TEXT_ENCODING"):
            try:
                config.text_encoding = codecs.lookup(encoding).name
            except LookupError:
                pass  # Ignore invalid values

        if (strict := _env_flag("PSID_STRICT_PAYLOAD")) is not None:
            config.strict_payload = strict

        return config


# =============================================================================
# Default Configuration Instance
# =============================================================================

_default_config: Optional[CodecConfig] = None


def get_default_config() -> CodecConfig:
    """
    Get the default codec configuration.

    Created from environment variables on first access. Can be replaced
    with set_default_config().
    """
    global _default_config
    if _default_config is None:
        _default_config = CodecConfig.from_env()
    return _default_config


def set_default_config(config: Optional[CodecConfig]) -> None:
    """
    Set the default codec configuration.

    Passing None makes the next get_default_config() re-read the
    environment.
    """
    global _default_config
    _default_config = config
