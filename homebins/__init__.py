"""Install binaries to $HOME. Not a package manager."""

__version__ = "0.1.0"
