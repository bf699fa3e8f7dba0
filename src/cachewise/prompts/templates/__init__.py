"""Built-in static templates."""
