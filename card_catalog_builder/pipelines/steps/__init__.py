from .metacritic_step import MetacriticStep
from .steam_step import SteamStep, is_card_game

__all__ = ["MetacriticStep", "SteamStep", "is_card_game"]
