"""
User interface components for Lucy Bot.

- **console.py**: Interactive operator console for live bot management: status,
  handler listings and search, hot reload of commands and events, event
  enable/disable, cooldown inspection, slash command sync, cache cleanup and
  graceful shutdown/restart. Uses prompt_toolkit for non-blocking I/O that
  does not interfere with Discord event handling.
"""
