"""Web components for Course Player."""
