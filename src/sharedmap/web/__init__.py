"""HTTP access to shared maps.

This package provides a Flask application that exposes shared maps
over JSON.  It is an **optional** extra — install with::

    pip install sharedmap[web]

The ``create_app`` factory in ``app.py`` holds one handle per map it
has been asked to open, so the map stays referenced between requests
until a client explicitly releases it.
"""
