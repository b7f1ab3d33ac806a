"""shiftmatch - shift assignment and scheduling-conflict engine for field agents.

Modules:
- config: load and validate configuration (YAML or JSON)
- domain: ORM models, repositories and immutable snapshot types
- services: context loaders, feasibility scoring, conflict detection,
  notifications and analytics
- engine: assignment matrix, greedy optimizer and the AssignmentService
- io: CSV import for seeding the store
- cli: command-line interface entrypoints
"""

__all__ = [
    "config",
    "domain",
    "services",
    "engine",
    "io",
    "cli",
]
