"""Application services shared by the use cases."""
