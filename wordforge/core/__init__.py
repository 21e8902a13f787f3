"""Package engine: element trees, registries, stores, encoders and assembly."""
