"""Infrastructure layer: provider integrations and observability."""
