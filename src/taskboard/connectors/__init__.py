"""Interactive connectors (console REPL)."""
