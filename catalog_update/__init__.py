"""Keep a monorepo's dependency catalog up to date with grouped pull requests."""
