"""Domain models shared by the core services and the infrastructure adapters."""
