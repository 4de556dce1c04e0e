"""
custodia: custodia de claves y cifrado de sobres sobre `cryptography`.
"""

__version__ = "0.1.0"
