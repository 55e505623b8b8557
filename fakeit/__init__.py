"""
fakeit: seeded commit history generator with transactional execution
"""

__version__ = "1.3.0"
