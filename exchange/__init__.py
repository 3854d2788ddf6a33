# exchange/__init__.py
"""
Exchange action pipeline.

Provides:
- Asset directory snapshots and the service that refreshes them
- Action model (orders, cancels, transfers, leverage, vault moves, builder fees)
- Canonical encoding, digest computation, nonce source, signers, envelopes
- TransactionBuilder for preparing unsigned components and signed envelopes
- Arbitrum bridge deposit calldata
"""
