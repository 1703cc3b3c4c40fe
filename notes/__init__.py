# flake8: noqa
"""
Plain Notes: a single-user, flat-file note-taking web server.

Modules:
    routing:  Allow-listed ``/<action>/<identifier>`` path matching.
    storage:  Page files on disk and the index scan of the storage directory.
    settings: ``app-config.json`` loading and persistence.
    templates:HTML rendering helpers for the index, view and edit pages.
    main:     FastAPI application wiring everything together.
"""
