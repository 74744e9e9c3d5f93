from .routes import inventory_bp  # noqa: F401
