"""
RiskGuard: rules-based address risk scoring for Stellar accounts.
"""
