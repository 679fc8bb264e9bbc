"""
Access package.

- ownership: OwnershipGuard, the single-owner check run by every
  privileged operation.
- acl: AccessControlManager, the append-only grant wrapper over the
  confidential backend (self-reuse, principal decrypt, public decrypt).
"""
