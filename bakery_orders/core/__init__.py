"""
Core package for shared configuration, logging and the error taxonomy.
"""
