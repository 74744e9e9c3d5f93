from .routes import documents_bp  # noqa: F401
