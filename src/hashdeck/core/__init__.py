"""
Hashdeck control-process core — ``src/hashdeck/core/``.

Everything with state, concurrency or failure handling lives here: the
backend prober and client, the relay channel, the command bridge, the
surface lifecycle and the orchestrator that wires them together.  Nothing
in this package imports Textual.
"""
