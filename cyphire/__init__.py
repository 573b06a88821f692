"""Cyphire freelance marketplace backend.

Clients post paid tasks, freelancers apply, the client escrows payment through
Razorpay to select one applicant, and the pair collaborate in a workroom until
both sides finalise.
"""

__version__ = "0.1.0"
