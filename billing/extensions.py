"""
billing/extensions.py

Extension singletons, bound to the app in create_app().

- db             Flask-SQLAlchemy (models in billing/models.py)
- migrate        Flask-Migrate / Alembic schema migrations
- login_manager  session login; unauthenticated API calls get a JSON 401 (no login page)
- csrf           Flask-WTF CSRF for mutating calls (X-CSRFToken header)
"""

from flask_login import LoginManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from flask_wtf import CSRFProtect

db = SQLAlchemy()
migrate = Migrate()

login_manager = LoginManager()
login_manager.session_protection = "strong"

csrf = CSRFProtect()
