"""
Signals & Priority Aggregation.

Components:
- schemas: Signal, PriorityItem, collector reports
- urgency: Urgency / time-pressure thresholds
- collectors: Per-source adapters and the concurrent collection pass
- aggregator: Group → attribute damage → rank → cap
- pipeline: Collection pass + aggregation for one tenant
"""
