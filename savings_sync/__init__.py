"""
Savings Sync - Source Package

Client-side savings goals kept consistent with a remote authority
under optimistic concurrency control, while staying usable offline.

DESIGN PRINCIPLES:
1. Apply locally first → confirm remotely → reconcile
2. A reachable remote that disagrees is authoritative (rollback)
3. An unreachable remote never loses a user's transaction (pending)
4. Every mutation is persisted immediately
5. Storage and remote authority are swappable
"""

__version__ = "1.0.0"
__author__ = "Savings Sync Team"
