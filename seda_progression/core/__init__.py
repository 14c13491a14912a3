"""Infrastructure layer: configuration, logging and the domain event bus."""
