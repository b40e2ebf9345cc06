"""
Infrastructure Layer
====================

Cross-context infrastructure: database engine, session lifecycle and the
SQLAlchemy unit of work.
"""
