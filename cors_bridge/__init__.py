"""Development CORS proxy with Socket.IO aware WebSocket bridging."""
