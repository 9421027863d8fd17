"""
Launchium token launcher: metadata pinning, SPL token creation, minting and
authority revocation, in single-shot or two-phase (prepare/execute) mode.
"""

__version__ = "1.0.0"
