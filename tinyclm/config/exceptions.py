# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Configuration failures for tinyclm.

ConfigError is also the base for corpus problems that make a requested run
impossible (wrong file length, corpus smaller than one window). Those are
configuration mistakes, not transient faults, and the CLI treats them the
same way.
"""


class ConfigError(Exception):
    """A run cannot start with the settings it was given."""


class ConfigLoadError(ConfigError):
    """The YAML file is missing, unreadable, malformed or not a mapping."""


class ConfigValidationError(ConfigError):
    """
    The YAML parsed but the values don't fit the schema: a missing
    config_version, a wrong type, an out-of-range number or an unknown key.
    """
