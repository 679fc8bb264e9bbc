"""
Eligibility Service package for the Confidential Eligibility layer.

An administrator stores encrypted eligibility thresholds and applicants
submit encrypted attributes to receive an encrypted yes/no verdict. No
component ever sees plaintext during computation. It provides:

- app.main: API surface for administration, rule reads, checks and health.
- app.contract: EligibilityContract wiring the components over the ledger.
- app.ledger: serialized commit-or-abort call execution.
- app.access: ownership guard and ACL grant manager.
- app.rules: encrypted rule set and its store.
- app.evaluation: the encrypted eligibility evaluator.
- app.audit: append-only handle-only event log.
- app.fhe: confidential backend interface, reference backend, input
  builder and decryption relayer.

Guidelines:
- Never decrypt or branch on a ciphertext inside the core.
- Every handle the contract produces gets a self-reuse grant before the
  call returns.
- Grants are never revoked.
"""
