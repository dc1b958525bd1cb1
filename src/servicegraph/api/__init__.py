"""HTTP and WebSocket surface for servicegraph."""
