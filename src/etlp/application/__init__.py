"""
Application layer for ETLP.

Use cases for the two consumption paths (batch query and live tail) and
the ports their adapters implement.
"""

from etlp.application.ports import LogSourcePort, ConsoleFeedPort
from etlp.application.query_logs import QueryOrchestrator, QueryTicket, LatestRequestGate
from etlp.application.live_tail import LiveTailAdapter

__all__ = [
    "LogSourcePort",
    "ConsoleFeedPort",
    "QueryOrchestrator",
    "QueryTicket",
    "LatestRequestGate",
    "LiveTailAdapter",
]
