"""
tabkeeper: browser tab sessions kept in sync with the live window.

- sessions: session store, record matcher, reconciliation engine, restore
- tabs: tab platform interface and adapters (in-memory, WebSocket)
- storage: key-value persistence substrates
"""

__version__ = "0.3.0"
