"""
Temporary sanction lifecycle: parsing, authorization, application and
automatic reversal.
"""
