"""Persistence - ORM models, repositories and the batch state store"""
