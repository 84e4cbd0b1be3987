# Infrastructure Adapters Package
from .json_storage import JsonFileGateway
from .memory_storage import InMemoryGateway
from .yaml_feed import load_highlight_feed, parse_highlight_feed

__all__ = ["InMemoryGateway", "JsonFileGateway", "load_highlight_feed", "parse_highlight_feed"]
