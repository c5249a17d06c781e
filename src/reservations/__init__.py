"""
Reservation Core Module

Building blocks shared by seat bookings and bus hirings:

- overlap.py: time-window conflict detection
- ledger.py: signed payment ledger and payment status
- refund_policy.py: time-tiered refund policies
- state_machine.py: status transition tables
- lifecycle.py: shared lifecycle operations (payments, cancellation, refunds)
- repository.py / sql_repository.py: record stores
- locks.py, events.py, clock.py: concurrency, domain events and time
"""
