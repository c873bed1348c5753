"""
Query Scheduler Test Suite.

- Timer bank and execution guard units
- Persistence round trips against a temporary SQLite file
- Sync worker state paths
- QueryScheduler surface on a manual clock
- End-to-end runs through the real SQLite connector
"""
