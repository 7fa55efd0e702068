"""API models and routers."""
