"""Domain layer - entities, value objects and enums"""
