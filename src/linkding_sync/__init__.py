"""Two-way bookmark sync between a linkding server and a local bookmark tree."""

__version__ = "0.4.0"
