"""Document persisters (load collaborators of the proxy factory)."""
