"""HTTP routers of the bridge: the turn endpoint and the health check."""
