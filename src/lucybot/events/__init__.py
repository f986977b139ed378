"""Built-in gateway event handlers. Every module here exports ``handler``."""
