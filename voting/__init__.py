"""Permissioned weighted voting engine."""

from .clock import ManualClock, SystemClock
from .config import ElectionConfig, EnginePolicy, load_config
from .engine import VotingEngine, bootstrap
from .errors import InfrastructureError, VotingError
from .events import EventLog, JsonlEventSink
from .ledger import FileLedgerStore, MemoryLedgerStore
from .models import Proposal, Status, Voter, VotingSession, Winner
from .phase import Phase

__all__ = [
    "ElectionConfig",
    "EnginePolicy",
    "EventLog",
    "FileLedgerStore",
    "InfrastructureError",
    "JsonlEventSink",
    "ManualClock",
    "MemoryLedgerStore",
    "Phase",
    "Proposal",
    "Status",
    "SystemClock",
    "Voter",
    "VotingEngine",
    "VotingError",
    "VotingSession",
    "Winner",
    "bootstrap",
    "load_config",
]
