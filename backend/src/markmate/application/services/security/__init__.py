"""Security service contracts"""
