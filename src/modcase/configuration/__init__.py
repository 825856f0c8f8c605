"""
Application configuration for Modcase.

- **app_configuration.py**: fcntl-locked YAML loader for ``config/app_config.yml``
  (database location, cache lifetimes, case counting mode, bot extensions).
  Falls back to defaults on missing or malformed files.
"""
