"""
DecisionCore — Cross-Module Confidence & Priority Engine.

Architecture:
    decisioncore/
    ├── confidence/      # Metric resolution over a LOCKED → OBSERVED → ESTIMATED chain
    ├── signals/         # Signal model, collector fan-out, priority aggregation
    ├── escalation/      # Read-time escalation paths from tenant rules
    ├── decisions/       # Decision card lifecycle, ownership, notifications, stores
    ├── db/              # SQLAlchemy models, engine, SQL-backed card store
    ├── api/             # FastAPI routers (HTTP layer)
    └── middleware/      # Tenant context, error handling

Module Boundaries:
    - Collectors only EMIT signals; the aggregator only ranks them
    - The resolver never fails: the estimated tier is always available
    - Escalation is computed on read, never by a background timer
    - Terminal decision cards are never silently re-opened

Data Flow:
    Collectors → Aggregator → Priority Queue → Decision Cards ← Escalation Scheduler

Version: 1.0.0
"""

__version__ = "1.0.0"
