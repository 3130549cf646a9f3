"""Live-connection gateway, presence registry and delivery engine."""
