"""fsguard - Restricted filesystem access layer.

Path, file and directory abstractions that check directory-scoped
read/write restrictions before touching the underlying filesystem.
"""

__version__ = "0.1.0"
