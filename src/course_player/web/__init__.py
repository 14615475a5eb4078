"""Web interface for Course Player."""
