"""Application wiring: ports (Protocols) and AppState."""
