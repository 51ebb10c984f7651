"""Account lifecycle services and their collaborators."""
