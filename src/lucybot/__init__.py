"""
Lucy Bot - Discord bot with hot-reloadable command and event handlers

Lucy Bot loads its slash commands and gateway event handlers from plain Python
files, so handlers can be added, reloaded, enabled or disabled while the bot is
running.

Core Components:

- **Handlers**: descriptor validation, file loading, command and event
  registries, plugin bundles, per-user cooldowns and the dispatch router that
  turns an interaction into a handler call.
- **Bot**: ``ClientFacade`` wires one py-cord client to the handler machinery
  and declares slash commands to Discord.
- **Database**: a local SQLite cache (aiosqlite) for expiring data and an
  optional PostgreSQL store (asyncpg) for durable records.
- **Console**: prompt_toolkit operator console for reloading handlers,
  inspecting cooldowns and restarting the bot.
- **Configuration**: YAML application settings plus ``.env`` secrets.

Entry point: ``lucybot.main:main``.
"""
