"""HTTP and WebSocket API for the chat relay service."""
