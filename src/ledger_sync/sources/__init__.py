"""
Upstream API clients: accounting ledger and bank feed
"""
