"""
Session synchronization and restore.

- models: TabRecord and the active session pointer
- store: typed accessors over the key-value substrate
- matcher: maps a live tab observation onto stored records
- reconciler: mirrors tab events into the active session
- restore: restore guard and orchestrator
"""
