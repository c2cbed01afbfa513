"""
MongoDB migrations for the forecast scoring store.

Each module under ``versions`` exposes ``upgrade(db)``/``downgrade(db)`` and
records itself in the ``_migrations`` collection. Run one directly:

    python -m migrations.versions.001_initial
"""
