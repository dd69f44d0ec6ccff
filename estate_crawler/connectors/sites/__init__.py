"""Reference portal connectors."""

from .athome import AthomeConnector
from .kenbiya import KenbiyaConnector
from .suumo import SuumoConnector

__all__ = ["AthomeConnector", "KenbiyaConnector", "SuumoConnector"]
