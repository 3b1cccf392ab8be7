"""Domain Layer: value objects, models, errors, events and interfaces.

Contains no I/O. Infrastructure adapters implement the interfaces defined
here; core services depend only on those interfaces.
"""
