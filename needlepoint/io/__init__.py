"""Storage and project-file collaborators."""
