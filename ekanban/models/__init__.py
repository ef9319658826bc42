"""
Electronic Kanban Platform
SQLAlchemy extension instance shared by all models.

Models:
    - reference:     Account, Product, Status
    - status_chain:  StatusChain, StatusChainEntry, ActorRole
    - kanban:        KanbanChain, Kanban, KanbanHistory
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
