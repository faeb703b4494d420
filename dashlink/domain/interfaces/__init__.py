"""Domain Interfaces (Ports):

Defines the contracts (Abstract Base Classes) that infrastructure components
must implement. The client and application services depend on these
interfaces, not concrete implementations.
"""
