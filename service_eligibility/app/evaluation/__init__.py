"""
Evaluation package.

The eligibility evaluator binds an applicant's encrypted attributes and
compares them with the current encrypted thresholds without decrypting
anything; the verdict is an encrypted boolean only the applicant may
decrypt.
"""
