"""Recipe driven installer for FXServer (FiveM) game servers."""

from importlib import metadata

__all__ = ["__version__"]


def __getattr__(name: str):
    if name == "__version__":
        return metadata.version("fxserver-installer")
    raise AttributeError(name)
