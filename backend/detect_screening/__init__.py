"""DETECT pulmonary arterial hypertension screening engine."""

__version__ = "0.1.0"
