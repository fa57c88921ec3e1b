"""HTTP routers. Thin callers of rotation_engine.service."""
