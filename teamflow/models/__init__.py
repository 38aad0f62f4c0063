"""
Teamflow Workspace Core
Database models package.

All models share the single ``db`` instance defined here; import it as
``from teamflow.models import db``.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
