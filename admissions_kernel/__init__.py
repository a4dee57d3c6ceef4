"""
Admissions Kernel

The admission lifecycle and payment reconciliation core:
- Application and Admission state machines
- Payment gating of lifecycle steps
- Idempotent reconciliation of gateway verifications
- A pure authorization decision point
"""

__version__ = "0.1.0"
