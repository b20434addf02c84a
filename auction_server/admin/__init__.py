"""Admin and operational endpoints."""
