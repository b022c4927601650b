"""Project configuration package for the tourism survey platform."""
