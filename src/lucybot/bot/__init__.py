"""
Discord client integration.

- **client.py**: ``ClientFacade``, the py-cord client together with the handler
  registries, router, plugin loader and slash command sync.
"""
