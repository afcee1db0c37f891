"""
Domain models - pure data structures representing lobby entities.
"""

from domain.models.lobby import GameState, Lobby, elect_leader
from domain.models.player import Player
from domain.models.presence import Presence

__all__ = ["GameState", "Lobby", "Player", "Presence", "elect_leader"]
