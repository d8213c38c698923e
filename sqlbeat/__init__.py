"""sqlbeat - periodic SQL queries shipped as metric events"""

__version__ = "1.0.0"
