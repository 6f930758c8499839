"""db-spine command-line interface."""
