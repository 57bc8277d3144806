from enum import Enum


class ServerGroup(Enum):
    """Subsets of the server pool a balancer can report."""
    ALL = "all"
    STATUS_UP = "status_up"
    STATUS_NOT_UP = "status_not_up"
