"""HTTP transport built on httpx, plus its immutable configuration."""
