"""
Rules package.

Defines the encrypted threshold rule set and the store that owns it. The
rule set always holds three ciphertext handles (minimum age, maximum prior
claims, minimum score); updates replace all three at once and are
restricted to the owner.

Modules of interest:
- models: RuleSet, ApplicantInput, threshold slots, types and defaults.
- store: RuleStore with encrypted, plaintext (development) and reset paths.
"""
