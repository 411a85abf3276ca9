"""Live game server status cache."""
