"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the client to the outside world (HTTP, configuration files, the
terminal) by implementing the interfaces defined in the domain layer.
"""
