"""
Core configuration, profiles, binding table and error taxonomy.
"""
