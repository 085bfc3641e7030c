"""Marginalia: AI margin notes for free-form writing."""
