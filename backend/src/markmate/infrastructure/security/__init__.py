"""Security implementations"""
