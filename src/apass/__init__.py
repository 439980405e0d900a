"""apass - A command-line secret manager.
Keeps key/value pairs in one encrypted file and syncs it through git.
"""

__version__ = "1.0.0"


def create(*args, **kwargs):
    """Create a SecretVault instance."""
    from .vault import SecretVault
    return SecretVault(*args, **kwargs)
