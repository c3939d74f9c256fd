"""
Core package: the state tree, transitions, events, validation and the machine.

Design Patterns:
- Composite Pattern for the state hierarchy
- Observer Pattern for lifecycle hooks
- Builder Pattern for turning descriptions into trees
"""
