"""
Vidifolio - portfolio to promotional video generation backend
"""

__version__ = "1.0.0"
