"""Domain models, ports and the batching core."""
