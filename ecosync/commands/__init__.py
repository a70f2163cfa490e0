"""Click commands for the ecosync CLI."""
