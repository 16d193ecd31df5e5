"""
Hashdeck terminal UI — ``src/hashdeck/ui/``.

A thin presentation layer over the control process.  Screens reach the
backend only through the command bridge and receive relay events from their
own event stream; no network code is imported here.

Entry point::

    from hashdeck.ui.app import run
    run(config)
"""
