"""Infrastructure layer: settings, logging setup and diagnostics buffering."""
