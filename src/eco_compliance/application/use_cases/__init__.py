"""Use cases orchestrating the domain through repository and collaborator ports."""
