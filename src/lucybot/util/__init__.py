"""
Utility functions and helpers for Lucy Bot.

- **logger.py**: Centralized logging configuration with colored console output,
  rotating file handlers, and per-session log files. Caps noisy third-party
  loggers (Discord internals, aiosqlite, asyncpg). Uses prompt_toolkit so log
  lines do not break the operator console prompt.

- **embeds.py**: ``create_embed`` with named colour presets and ``send_error``,
  the best-effort error reply used by the built-in commands.

- **discord_utils.py**: moderation target checks and formatting helpers
  (durations, truncation, latency grades, byte sizes).
"""
