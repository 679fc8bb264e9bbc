"""
Audit package.

Holds the append-only event log. Every rule mutation, ownership change and
successful eligibility check leaves exactly one record; records reference
ciphertext handles only.
"""
