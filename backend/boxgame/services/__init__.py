"""Game domain services: participant store, winner draw, session and backup sync.

Socket handlers and HTTP routes import from here, keeping transport concerns
separated from core game mechanics.
"""
from flask import current_app


def game_session():
    return current_app.extensions['game_session']


def backup_replicator():
    return current_app.extensions['backup_replicator']
