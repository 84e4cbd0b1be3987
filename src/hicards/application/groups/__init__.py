# Application Groups Package
from .filters import CardView, GroupFilter, parse_filter
from .manager import GroupManager

__all__ = ["CardView", "GroupFilter", "GroupManager", "parse_filter"]
