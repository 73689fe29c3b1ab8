import os

from .manifest import ManifestProvider

PROVIDERS = [
    ManifestProvider(),
]


def detect_provider(directory: str = "."):
    """Checks files in the given directory and returns the provider able to read them."""
    files = os.listdir(directory)

    for provider in PROVIDERS:
        if provider.detect(files):
            return provider

    return None
