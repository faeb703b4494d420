"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the application to the outside world (the dashboard backend, the
session file, the terminal) by implementing the interfaces defined in the
domain layer. Also holds the resilience layer around HTTP calls.
"""
