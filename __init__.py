"""
rf-flatcodec

Import and export of random forests as flat ``topology``/``parameters``
arrays inside a hierarchical container store, compatible with the
``vigra_random_forest_version`` 0.1 layout.

See README.md for the on-disk layout.
"""
