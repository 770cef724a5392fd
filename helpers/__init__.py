"""Shared helpers that do not depend on the forecaster package."""
