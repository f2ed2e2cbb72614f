"""Dashboard module -- aggregate figures over deals and customers."""
