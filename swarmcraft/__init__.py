"""SwarmCraft: coordination core for fleets of autonomous game bots."""

try:
    from importlib.metadata import version as _pkg_version

    __version__ = _pkg_version("swarmcraft")
except Exception:
    __version__ = "4.2.0"  # fallback

__all__ = ["__version__"]
