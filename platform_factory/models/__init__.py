"""
Platform Factory
SQLAlchemy models.

The pipeline itself is stateless; the database only holds the LLM usage
log and, when BUILD_STORE_BACKEND=sql, persisted build records.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
