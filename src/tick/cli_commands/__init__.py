"""Click commands grouped by area and registered on the ``tick`` group in ``tick.cli``."""
