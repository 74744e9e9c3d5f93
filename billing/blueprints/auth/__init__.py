from .routes import auth_bp  # noqa: F401
