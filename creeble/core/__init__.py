"""Core Layer: application services built on the domain interfaces."""
