"""Shared SQLAlchemy handle.

Models import ``db`` from here so they can be declared before the Flask app
binds the extension in ``app.py``.
"""
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
