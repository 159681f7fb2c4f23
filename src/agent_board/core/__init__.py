"""Core agent-board components: models, config, registry, sessions and the board facade."""
