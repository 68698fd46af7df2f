"""HTTP blueprints, registered by ``create_app``."""
