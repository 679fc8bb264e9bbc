"""
Principals used across Eligibility Service tests.
"""

CONTRACT = "0x00000000000000000000000000000000e11e1b1e"
OWNER = "0x000000000000000000000000000000000000a0a0"
APPLICANT = "0x000000000000000000000000000000000000b0b0"
OTHER_APPLICANT = "0x000000000000000000000000000000000000c0c0"
