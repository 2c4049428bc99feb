"""cloudclass - class-driven AWS infrastructure management.

This package provides a command line tool that provisions and manages
AWS resources from named configuration classes kept in SimpleDB.
"""

__version__ = "1.0.0"
__author__ = "cloudclass maintainers"
