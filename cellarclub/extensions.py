"""
Flask extension instances shared across the CellarClub console.

Bound to the application inside create_app().
"""
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

# Tenant, club, enrollment and side-effect tables
db = SQLAlchemy()

# Alembic migrations under migrations/versions
migrate = Migrate()
