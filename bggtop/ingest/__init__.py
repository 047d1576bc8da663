"""Game listing ingestion."""

from bggtop.ingest.puller import GameListingSource, iter_game_pages, pull_games


__all__ = ["GameListingSource", "iter_game_pages", "pull_games"]
