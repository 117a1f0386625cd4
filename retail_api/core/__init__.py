"""
Core infrastructure: settings, database, auth, errors and process state
"""
