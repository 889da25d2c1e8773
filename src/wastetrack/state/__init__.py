"""State/store layer.

This package owns the durable view of the fleet: the current-state store,
the bounded-retention location history, and the storage backends behind
them. Only the ingest reconciler writes through it.
"""
