"""sailtrace — GPS track processing for sailing races."""

__version__ = "0.1.0"
