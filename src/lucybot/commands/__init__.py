"""Built-in slash commands. Every module here exports ``handler``."""
