"""
Configuration management for Lucy Bot.

- **app_configuration.py**: YAML configuration loader for global settings:
  handler directories, the local cache database location and cleanup interval,
  migration directories, presence text and the user-facing router messages.
  Falls back to built-in defaults on missing or malformed config files.

Secrets (the Discord token, the PostgreSQL DSN) and the run mode come from the
environment; see :func:`lucybot.main.load_environment`.
"""
