from .routes import settings_bp  # noqa: F401
