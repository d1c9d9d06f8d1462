"""Employees who handle rental transactions."""
