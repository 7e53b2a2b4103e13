"""Records, paths and exception types shared by the drivers."""
