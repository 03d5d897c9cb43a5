"""
Accounting Back Office
SQLAlchemy extension instance shared by every model module.

Usage:
    from backoffice.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
