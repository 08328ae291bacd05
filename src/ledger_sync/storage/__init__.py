"""
Persistence for learned rules and bank connections
"""
