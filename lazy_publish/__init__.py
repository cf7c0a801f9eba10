"""lazy-publish: decide what a multi-workspace repository needs to publish."""
